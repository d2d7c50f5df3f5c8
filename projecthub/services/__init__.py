from projecthub.services.audit_trail import AuditDiffBuilder, AuditEntry
from projecthub.services.change_tracking import ChangeSet, EditSession
from projecthub.services.field_catalog import FieldCatalog, FieldDescriptor
from projecthub.services.mutation_router import MutationBundle, MutationRouter
from projecthub.services.provisional_records import ProvisionalAllocator

__all__ = [
	"AuditDiffBuilder",
	"AuditEntry",
	"ChangeSet",
	"EditSession",
	"FieldCatalog",
	"FieldDescriptor",
	"MutationBundle",
	"MutationRouter",
	"ProvisionalAllocator",
]
