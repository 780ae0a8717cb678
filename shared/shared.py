from enum import Enum, unique

DATASETS_COLLECTION = "datasets"
VERSIONS_COLLECTION = "versions"
INSTANCES_COLLECTION = "instances"
REQUESTED_USERS_COLLECTION = "requestedUsers"
USERS_COLLECTION = "Users"
USER_REQUESTS_COLLECTION = "requests"

PATH_SEPARATOR = "/"
VERSION_SEPARATOR = "."
VERSION_KEY_PREFIX = "v"


@unique
class Visibility(str, Enum):
    PUBLIC = "Public"
    PRIVATE = "Private"

    @classmethod
    def parse(cls, value) -> "Visibility":
        if isinstance(value, str) and value.strip().lower() == cls.PUBLIC.value.lower():
            return cls.PUBLIC
        return cls.PRIVATE


@unique
class FileSchema(str, Enum):
    """Generations of the files field on version and instance records"""

    FILES = "files"
    FILE_URLS = "fileUrls"
    FILE_URL = "fileUrl"
    NONE = "none"


# Newest generation first
FILE_SCHEMA_PRECEDENCE = [FileSchema.FILES, FileSchema.FILE_URLS, FileSchema.FILE_URL]


@unique
class ConsistencyTier(str, Enum):
    """How a usage ledger step is applied to the record store"""

    STRICT = "strict"  # single-document transaction
    EVENTUAL = "eventual"  # document-local atomic primitives


def document_path(*segments: str) -> str:
    """Join alternating collection/document segments into a store path"""
    for segment in segments:
        if not segment or PATH_SEPARATOR in segment:
            raise ValueError(f"Invalid path segment: {segment!r}")
    return PATH_SEPARATOR.join(segments)


def split_document_path(path: str):
    """Return (collection_path, document_id) for a document path"""
    segments = path.split(PATH_SEPARATOR)
    if len(segments) < 2 or len(segments) % 2 != 0 or not all(segments):
        raise ValueError(f"Not a document path: {path!r}")
    return PATH_SEPARATOR.join(segments[:-1]), segments[-1]


def dataset_path(dataset_id: str) -> str:
    return document_path(DATASETS_COLLECTION, dataset_id)


def versions_collection_path(dataset_id: str) -> str:
    return document_path(DATASETS_COLLECTION, dataset_id) + PATH_SEPARATOR + VERSIONS_COLLECTION


def version_path(dataset_id: str, version_id: str) -> str:
    return document_path(DATASETS_COLLECTION, dataset_id, VERSIONS_COLLECTION, version_id)


def instance_path(dataset_id: str, version_id: str, instance_id: str) -> str:
    return document_path(
        DATASETS_COLLECTION,
        dataset_id,
        VERSIONS_COLLECTION,
        version_id,
        INSTANCES_COLLECTION,
        instance_id,
    )


def version_requestor_path(dataset_id: str, version_id: str, user_id: str) -> str:
    return document_path(
        DATASETS_COLLECTION,
        dataset_id,
        VERSIONS_COLLECTION,
        version_id,
        REQUESTED_USERS_COLLECTION,
        user_id,
    )


def user_request_path(user_id: str, dataset_id: str) -> str:
    return document_path(USERS_COLLECTION, user_id, USER_REQUESTS_COLLECTION, dataset_id)
