"""Campus access control service: attribute-based access decisions for college records."""
