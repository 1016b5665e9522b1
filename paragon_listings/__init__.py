"""Paragon RESO/OData listings client."""
