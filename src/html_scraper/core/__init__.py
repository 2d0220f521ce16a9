"""Cross-cutting infrastructure: exceptions, logging, response schemas."""
