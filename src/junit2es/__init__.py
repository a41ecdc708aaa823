"""Upload JUnit XML test reports to Elasticsearch as flat documents."""

__version__ = "0.1.0"
