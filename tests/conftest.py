import pytest

from trias_assessment.catalog import Catalog


@pytest.fixture(scope="session")
def yaml_catalog():
    """The shipped catalog from catalog/v1, loaded once."""
    return Catalog.from_yaml()
