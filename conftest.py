from datalad.conftest import setup_package  # noqa: F401

pytest_plugins = ('datalad_next.tests.fixtures',)
