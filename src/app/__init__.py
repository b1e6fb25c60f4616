"""OOH Mapper HTTP application."""
