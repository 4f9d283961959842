import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13", "3.14"]


def _install(session: nox.Session) -> None:
    """Install the project with all test extras into the nox virtualenv."""
    session.run(
        "poetry",
        "install",
        "--all-extras",
        external=True,
    )


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run full test suite across Python versions."""
    _install(session)
    session.run("pytest")


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Run domain-layer tests only (no infrastructure required)."""
    _install(session)
    session.run("pytest", "tests/reviews/domain/")


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_fast(session: nox.Session) -> None:
    """Skip tests marked slow (integration tests that are not marked fast)."""
    _install(session)
    session.run("pytest", "-m", "not slow", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_bdd(session: nox.Session) -> None:
    """Run the Gherkin scenarios only."""
    _install(session)
    session.run("pytest", "tests/reviews/bdd/", *session.posargs)
