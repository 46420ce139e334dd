"""
Central constants for the Contabil application.

Enum values are stored verbatim; they must stay compatible with existing data.
"""
from __future__ import annotations

# Profile.account_type
ACCOUNT_CONTADOR = "contador"
ACCOUNT_ESCRITORIO = "escritorio"
ACCOUNT_TYPES = (ACCOUNT_CONTADOR, ACCOUNT_ESCRITORIO)
DEFAULT_ACCOUNT_TYPE = ACCOUNT_CONTADOR

ACCOUNT_TYPE_LABELS = {
    ACCOUNT_CONTADOR: "Contador autônomo",
    ACCOUNT_ESCRITORIO: "Escritório de contabilidade",
}

# Client.person_type
PERSON_PF = "PF"
PERSON_PJ = "PJ"
PERSON_TYPES = (PERSON_PF, PERSON_PJ)

PERSON_TYPE_LABELS = {
    PERSON_PF: "Pessoa Física",
    PERSON_PJ: "Pessoa Jurídica",
}

# Task.task_type
TASK_TYPES = ("imposto", "folha", "declaracao", "outro")
DEFAULT_TASK_TYPE = "outro"

TASK_TYPE_LABELS = {
    "imposto": "Imposto",
    "folha": "Folha",
    "declaracao": "Declaração",
    "outro": "Outro",
}

# Task.status. "atrasada" exists for schema compatibility only; overdue is always derived.
STATUS_PENDENTE = "pendente"
STATUS_CONCLUIDA = "concluida"
STATUS_ATRASADA = "atrasada"
TASK_STATUSES = (STATUS_PENDENTE, STATUS_CONCLUIDA, STATUS_ATRASADA)
# Stored values that still count as open work
OPEN_STATUSES = (STATUS_PENDENTE, STATUS_ATRASADA)

# Minimum field lengths (form validation)
MIN_PROFILE_NAME = 3
MIN_CLIENT_NAME = 2
MIN_CPF_CNPJ = 11
MIN_TASK_TITLE = 3
MIN_PASSWORD = 6
