"""
Clients module.

- Client CRUD scoped to the signed-in profile
- Search by name or CPF/CNPJ
- Deleting a client keeps its tasks (client reference cleared)
"""
