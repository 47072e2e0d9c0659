"""ULID and Snowflake identifier generation."""

__all__ = ["ulid", "snowflake"]