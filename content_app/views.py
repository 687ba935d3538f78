import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .batch_delete import BatchDeleteResult, batch_delete
from .config import RepoConfig
from .errors import BatchDeleteError, ConfigurationError, InvalidSlugsError, ObjectStoreError, RefConflictError
from .github_client import GitHubObjectStore
from .helpers import hash_object
from .local_store import DjangoObjectStore
from .models import GitObject, Reference, Repository
from .store import ObjectStore

logger = logging.getLogger(__name__)

BACKENDS = {
    "github": GitHubObjectStore,
    "local": DjangoObjectStore,
}


def get_repo_config() -> RepoConfig:
    return RepoConfig.from_settings(settings.CONTENT_REPOSITORY)


def get_object_store(config: RepoConfig) -> ObjectStore:
    backend = getattr(settings, "CONTENT_STORE_BACKEND", "github")
    try:
        return BACKENDS[backend](config)
    except KeyError:
        raise ConfigurationError(f"unknown CONTENT_STORE_BACKEND {backend!r}")


def _configuration_failure(error: ConfigurationError) -> JsonResponse:
    logger.error("content repository is misconfigured: %s", error)
    return JsonResponse({"status": "failed", "error": str(error)}, status=500)


def _result_payload(result: BatchDeleteResult) -> dict:
    return {
        "status": "noop" if result.noop else "deleted",
        "count": result.count,
        "paths": result.deleted_paths,
        "unmatched": result.unmatched,
        "commit": result.commit_sha,
        "message": result.message,
        "attempts": result.attempts,
    }


@csrf_exempt
@require_POST
def delete_content(request: HttpRequest) -> JsonResponse:
    try:
        data = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        return JsonResponse({"status": "failed", "error": "request body is not valid JSON"}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({"status": "failed", "error": "expected a JSON object"}, status=400)

    try:
        config = get_repo_config()
        store = get_object_store(config)
    except ConfigurationError as e:
        return _configuration_failure(e)
    try:
        result = batch_delete(store, config, data.get("slugs"))
    except InvalidSlugsError as e:
        return JsonResponse({"status": "failed", "error": str(e)}, status=400)
    except BatchDeleteError as e:
        status = 409 if isinstance(e.cause, RefConflictError) else 502
        return JsonResponse({
            "status": "failed",
            "stage": e.stage.value,
            "error": str(e.cause),
            "orphaned": e.orphaned,
        }, status=status)
    return JsonResponse(_result_payload(result))


@require_GET
def content_files(request: HttpRequest) -> JsonResponse:
    try:
        config = get_repo_config()
        store = get_object_store(config)
    except ConfigurationError as e:
        return _configuration_failure(e)
    ref = request.GET.get("ref") or config.branch
    try:
        documents = store.list_directory_recursive(config.content_dir, ref)
        images = store.list_directory_recursive(config.image_root, ref)
    except ObjectStoreError as e:
        logger.warning("listing %s failed: %s", ref, e)
        return JsonResponse({"status": "failed", "error": str(e)}, status=502)
    return JsonResponse({"ref": ref, "documents": documents, "images": images})


@csrf_exempt
@require_POST
def push_objects(request: HttpRequest, repo_name: str) -> JsonResponse:
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({"status": "failed", "error": "request body is not valid JSON"}, status=400)

    parsed = []
    for obj in data.get('objects', []):
        try:
            raw = bytes.fromhex(obj['data'])
            null_index = raw.index(b'\0')
            obj_type, _size = raw[:null_index].decode().split(' ')
            body = raw[null_index+1:]
        except (KeyError, TypeError, ValueError) as e:
            return JsonResponse({"status": "failed", "error": f"malformed object: {e}"}, status=400)
        if obj_type not in ('blob', 'tree', 'commit'):
            return JsonResponse({"status": "failed", "error": f"unknown object type {obj_type!r}"}, status=400)
        sha1, _ = hash_object(body, obj_type)
        if sha1 != obj.get('sha1'):
            return JsonResponse({"status": "failed", "error": f"hash mismatch for {obj.get('sha1')}"}, status=400)
        parsed.append((sha1, obj_type, raw))

    repo, _ = Repository.objects.get_or_create(name=repo_name)
    stored = 0
    for sha1, obj_type, raw in parsed:
        _, created = GitObject.objects.get_or_create(
            repo=repo, sha1=sha1, defaults={"type": obj_type, "data": raw}
        )
        stored += created

    ref_name = Reference.qualify(data.get('ref', 'refs/heads/main'))
    new_hash = data.get('head')
    if new_hash:
        if not GitObject.objects.filter(repo=repo, sha1=new_hash, type='commit').exists():
            return JsonResponse({"status": "failed", "error": f"unknown commit {new_hash}"}, status=400)
        Reference.objects.update_or_create(repo=repo, name=ref_name, defaults={'commit_hash': new_hash})
    logger.info("push to %s: %d new objects, %s -> %s", repo_name, stored, ref_name, new_hash)
    return JsonResponse({"status": "pushed", "stored": stored})
