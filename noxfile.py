"""sshauth Nox configuration"""
import nox

@nox.session
def lint(session):
    """Lint source files and tests."""
    session.install("pylint", "nox", ".[test]")
    session.run("pylint", "noxfile.py")
    session.run("pylint", *session.posargs, "sshauth.py", "authkeys.py", "keyfetch.py",
                "objstore.py", "sshauthcfg.py", "sshlogger.py")
    session.run("pylint", *session.posargs, "tests")

@nox.session
def tests(session):
    """Run the unit tests against a stubbed object store."""
    session.install(".[test]")
    session.run("pytest", "-s", *session.posargs, "tests")
