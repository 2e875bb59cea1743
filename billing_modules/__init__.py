"""
Billing Modules.

Thin declarative layers over the Billing Kernel and Engines.
Each module contains:
- Domain models (the nouns)
- Workflows (state machines)
- Configuration schemas (policy and settings)
- ORM mappings for the SQL-backed store

Modules:
- Invoicing: Clients, invoices, payments, recurring invoices
"""
