"""Reusable contract templates, scoped to one company or shared (company_id NULL)."""
