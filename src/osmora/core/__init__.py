"""Core domain logic for osmora."""
