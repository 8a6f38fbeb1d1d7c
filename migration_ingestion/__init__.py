"""
migration_ingestion -- Legacy school-data migration pipeline.

Reads the legacy XML exports (validated against their XSD schema
definitions), maps them into typed entities, resolves cross-kind
references, synthesizes families and billing, and writes everything to the
target store under a conflict policy, producing a run summary and an
exceptions report.

Data flow:
    adapters (read) -> mapping -> resolution -> synthesis
        -> promoters (write, via services.execution_service) -> services.report_service
"""
