"""Declarative bases for the two independent table groups.

AliasBase owns the alias and settings tables, SecurityBase owns the IP
ledger tables. They are kept apart so each group can be created on its own
database and so the alias store keeps working when the ledger cannot.
"""

from sqlalchemy.orm import declarative_base


AliasBase = declarative_base()
SecurityBase = declarative_base()
