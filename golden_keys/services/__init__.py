from golden_keys.services.golden_key_catalog import ConcurrentOperationError, GoldenKeyCatalog
from golden_keys.services.golden_key_codec import GoldenKeyImportError
from golden_keys.services.golden_key_gateway import (
    DuplicateRecordError,
    GatewayError,
    GoldenKeyGateway,
    HttpGoldenKeyGateway,
    JsonFileGoldenKeyGateway,
    RecordNotFoundError,
    SqlAlchemyGoldenKeyGateway,
)
from golden_keys.services.golden_key_workflow import (
    DuplicateGoldenKeyError,
    GoldenKeyNotFoundError,
    GoldenKeyPolicyError,
    GoldenKeyValidationError,
    GoldenKeyWorkflow,
)

__all__ = [
	"ConcurrentOperationError",
	"DuplicateGoldenKeyError",
	"DuplicateRecordError",
	"GatewayError",
	"GoldenKeyCatalog",
	"GoldenKeyGateway",
	"GoldenKeyImportError",
	"GoldenKeyNotFoundError",
	"GoldenKeyPolicyError",
	"GoldenKeyValidationError",
	"GoldenKeyWorkflow",
	"HttpGoldenKeyGateway",
	"JsonFileGoldenKeyGateway",
	"RecordNotFoundError",
	"SqlAlchemyGoldenKeyGateway",
]
