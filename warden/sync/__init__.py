"""Policy synchronisation — bring live branch protection in line with a spec.

This package provides:
- Existence checks and full-replace policy application
- Verification: field-by-field comparison of live state against intent
- The runner that isolates failures per branch and builds the run report
"""
