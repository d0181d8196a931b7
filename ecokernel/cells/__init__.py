"""Memory cells — fixed-layout records in a parallel pool."""
