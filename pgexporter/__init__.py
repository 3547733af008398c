"""PostgreSQL metrics exporter for Prometheus."""
