"""
Artifacts: files attached to trials or studies.

File contents live in an artifact store; the metadata needed to find them again
(ID, file name, mimetype, encoding) is kept as a user attribute of the trial or
study under the key ``artifacts:<artifact_id>``.
"""
import io
import json
import mimetypes
import os
import shutil
import uuid
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, BinaryIO, Dict, List, Optional, Union

from ._logging import get_logger
from .exceptions import ArtifactNotFoundError

if TYPE_CHECKING:
    from .core.study import Study
    from .core.trial import FrozenTrial, Trial

logger = get_logger(__name__)

ARTIFACTS_ATTR_PREFIX = "artifacts:"
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class ArtifactMeta:
    """
    Metadata of an uploaded artifact.

    Attributes:
        artifact_id: The ID assigned on upload.
        filename: The base name of the uploaded file.
        mimetype: The MIME type, guessed from the file name unless given.
        encoding: The content encoding (e.g. ``gzip``), if any.
    """
    artifact_id: str
    filename: str
    mimetype: str
    encoding: Optional[str] = None


class FileSystemArtifactStore:
    """
    An artifact store that keeps one file per artifact under ``base_path``.

    Args:
        base_path: The directory holding the artifacts. Created if missing.
    """

    def __init__(self, base_path: str):
        self._base_path = os.path.abspath(base_path)
        os.makedirs(self._base_path, exist_ok=True)

    @property
    def base_path(self) -> str:
        return self._base_path

    def _path(self, artifact_id: str) -> str:
        if os.sep in artifact_id or (os.altsep and os.altsep in artifact_id) or artifact_id in ("", ".", ".."):
            raise ValueError(f"Invalid artifact ID: {artifact_id!r}")
        return os.path.join(self._base_path, artifact_id)

    def open_reader(self, artifact_id: str) -> BinaryIO:
        path = self._path(artifact_id)
        if not os.path.isfile(path):
            raise ArtifactNotFoundError(f"Artifact '{artifact_id}' does not exist in {self._base_path}.")
        return open(path, "rb")

    def write(self, artifact_id: str, content_body: BinaryIO) -> None:
        with open(self._path(artifact_id), "wb") as f:
            shutil.copyfileobj(content_body, f)

    def remove(self, artifact_id: str) -> None:
        path = self._path(artifact_id)
        if not os.path.isfile(path):
            raise ArtifactNotFoundError(f"Artifact '{artifact_id}' does not exist in {self._base_path}.")
        os.remove(path)


def _require_store(study: "Study") -> FileSystemArtifactStore:
    if study.artifact_store is None:
        raise ValueError(
            f"Study '{study.study_name}' has no artifact store. "
            "Pass `artifact_store` when creating or loading the study."
        )
    return study.artifact_store


def upload_artifact(study: "Study", trial: Optional["Trial"], file_path: Union[str, Dict[str, Any]],
                    mimetype: Optional[str] = None, encoding: Optional[str] = None) -> str:
    """
    Uploads a file and attaches it to a running trial, or to the study itself.

    Args:
        study: The study owning the artifact store.
        trial: The running trial to attach the artifact to. ``None`` attaches
            it to the study.
        file_path: Path of the file to upload. A dict is serialized to JSON
            and uploaded as ``<artifact_id>.json``.
        mimetype: Overrides the MIME type guessed from the file name.
        encoding: Overrides the encoding guessed from the file name.

    Returns:
        The ID of the new artifact.
    """
    store = _require_store(study)
    artifact_id = str(uuid.uuid4())

    if isinstance(file_path, dict):
        filename = f"{artifact_id}.json"
        body = io.BytesIO(json.dumps(file_path).encode("utf-8"))
        store.write(artifact_id, body)
        guessed_mimetype, guessed_encoding = "application/json", None
    else:
        filename = os.path.basename(file_path)
        guessed_mimetype, guessed_encoding = mimetypes.guess_type(filename)
        with open(file_path, "rb") as f:
            store.write(artifact_id, f)

    meta = ArtifactMeta(
        artifact_id=artifact_id,
        filename=filename,
        mimetype=mimetype or guessed_mimetype or DEFAULT_MIME_TYPE,
        encoding=encoding or guessed_encoding,
    )
    key = ARTIFACTS_ATTR_PREFIX + artifact_id
    if trial is None:
        study.set_user_attr(key, asdict(meta))
    else:
        trial.set_user_attr(key, asdict(meta))
    logger.debug(f"Uploaded artifact {artifact_id} ({meta.filename}) for study '{study.study_name}'.")
    return artifact_id


def _metas_from_attrs(attrs: Dict[str, Any]) -> List[ArtifactMeta]:
    return [
        ArtifactMeta(**value)
        for key, value in attrs.items()
        if key.startswith(ARTIFACTS_ATTR_PREFIX)
    ]


def get_all_artifact_meta(study: "Study",
                          trial: Optional[Union["Trial", "FrozenTrial"]] = None) -> List[ArtifactMeta]:
    """
    Lists artifact metadata.

    With a trial, only the artifacts of that trial are returned. Without one,
    the study's own artifacts come first, followed by those of every trial in
    trial-number order.
    """
    if trial is not None:
        return _metas_from_attrs(trial.user_attrs)
    metas = _metas_from_attrs(study.user_attrs)
    for t in study.trials:
        metas.extend(_metas_from_attrs(t.user_attrs))
    return metas


def download_artifact(study: "Study", artifact_id: str, file_path: str) -> str:
    """
    Copies an artifact out of the store.

    Args:
        study: The study owning the artifact store.
        artifact_id: The ID returned by :func:`upload_artifact`.
        file_path: Destination file. If it names an existing directory, the
            artifact is written there under its original file name.

    Returns:
        The path written to.
    """
    store = _require_store(study)
    if os.path.isdir(file_path):
        filename = artifact_id
        for meta in get_all_artifact_meta(study):
            if meta.artifact_id == artifact_id:
                filename = meta.filename
                break
        file_path = os.path.join(file_path, filename)
    if os.path.exists(file_path):
        raise FileExistsError(f"File already exists: {file_path}")

    with store.open_reader(artifact_id) as reader, open(file_path, "wb") as writer:
        shutil.copyfileobj(reader, writer)
    return file_path
