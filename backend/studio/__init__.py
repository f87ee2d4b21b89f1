"""Studio class scheduling and reservation backend."""
