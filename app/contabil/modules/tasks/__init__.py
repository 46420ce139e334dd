"""
Tasks module.

- Task CRUD scoped to the signed-in profile, optionally linked to one of its clients
- Completion toggle (pendente <-> concluida)
- Status filters, with "overdue" derived from the due date (see app.contabil.status)
"""
