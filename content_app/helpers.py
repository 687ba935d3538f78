import hashlib
import time

from .models import GitObject

AUTHOR = "content-git <content-git@localhost>"


def hash_object(body: bytes, obj_type: str):
    header = f"{obj_type} {len(body)}\0".encode()
    raw = header + body
    return hashlib.sha1(raw).hexdigest(), raw


def load_object(obj: GitObject):
    raw = bytes(obj.data)
    null_index = raw.find(b'\0')
    header = raw[:null_index].decode()
    obj_type, size = header.split(' ')
    body = raw[null_index+1:]
    if int(size) != len(body):
        raise ValueError(f"object {obj.sha1} is truncated")
    return obj_type, body


def parse_tree(body: bytes):
    entries = []
    for line in body.decode().splitlines():
        kind, sha, name = line.split(' ', 2)
        entries.append({"type": kind, "sha": sha, "name": name})
    return entries


def serialize_tree(entries) -> bytes:
    lines = [f"{e['type']} {e['sha']} {e['name']}" for e in sorted(entries, key=lambda e: e["name"])]
    return "\n".join(lines).encode()


def parse_commit(body: bytes):
    text = body.decode()
    header, message = text.split("\n\n", 1)
    info = {"message": message, "parents": []}
    for line in header.splitlines():
        if line.startswith("tree "):
            info["tree"] = line.split(" ", 1)[1]
        elif line.startswith("parent "):
            info["parents"].append(line.split(" ", 1)[1])
        elif line.startswith("author "):
            info["author_line"] = line[7:]
    return info


def serialize_commit(tree_sha: str, parents, message: str, timestamp=None) -> bytes:
    if timestamp is None:
        timestamp = int(time.time())
    content = f"tree {tree_sha}\n"
    for parent in parents:
        content += f"parent {parent}\n"
    content += f"author {AUTHOR} {timestamp}\n\n{message}"
    return content.encode()
