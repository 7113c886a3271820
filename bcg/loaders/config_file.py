"""
Peering configuration loader

Decodes the operator's peering configuration (YAML, TOML or JSON, chosen by
file extension) into a GlobalConfig. Keys are matched case-insensitively so
both the YAML spellings (``router-id``, ``import``) and the TOML ones
(``Router-ID``, ``ImportPolicy``) are accepted.

Only shapes and types are checked here; policy invariants are enforced by
the pipeline and the peer resolver.
"""

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Callable, Dict, List, Union

import yaml

from bcg.models import GlobalConfig, PeerRecord
from bcg.utils.error_handling import ConfigValidationError, ParameterValidator

logger = logging.getLogger("bcg.loaders")

GLOBAL_KEYS = {
    "asn": "asn",
    "router-id": "router_id",
    "prefixes": "prefixes",
    "peers": "peers",
    "irrdb": "irrdb",
    "rtrserver": "rtr_server",
    "rpkiserver": "rtr_server",
}

PEER_KEYS = {
    "asn": "asn",
    "as-set": "as_set",
    "maxpfx4": "max_prefix4",
    "maxpfx6": "max_prefix6",
    "pfxlimitaction": "prefix_limit_action",
    "pfxfilter4": "prefix_filter4",
    "pfxfilter6": "prefix_filter6",
    "import": "import_policy",
    "importpolicy": "import_policy",
    "export": "export_policy",
    "exportpolicy": "export_policy",
    "localpref": "local_pref",
    "neighbors": "neighbors",
    "multihop": "multihop",
    "passive": "passive",
    "disabled": "disabled",
    "automaxpfx": "auto_max_prefix",
    "autopfxfilter": "auto_prefix_filter",
    "preimport": "pre_import",
    "preexport": "pre_export",
    "prepends": "prepends",
}

PEER_FIELD_TYPES = {
    "as_set": str,
    "max_prefix4": int,
    "max_prefix6": int,
    "prefix_limit_action": str,
    "prefix_filter4": list,
    "prefix_filter6": list,
    "import_policy": str,
    "export_policy": str,
    "local_pref": int,
    "neighbors": list,
    "multihop": bool,
    "passive": bool,
    "disabled": bool,
    "auto_max_prefix": bool,
    "auto_prefix_filter": bool,
    "pre_import": str,
    "pre_export": str,
    "prepends": int,
}


def _decode_yaml(text: str) -> Any:
    return yaml.safe_load(text)


def _decode_toml(text: str) -> Any:
    return tomllib.loads(text)


def _decode_json(text: str) -> Any:
    return json.loads(text)


DECODERS: Dict[str, Callable[[str], Any]] = {
    ".yml": _decode_yaml,
    ".yaml": _decode_yaml,
    ".toml": _decode_toml,
    ".json": _decode_json,
}

SUPPORTED_EXTENSIONS = tuple(sorted(DECODERS))


def _canonical_keys(data: Dict[str, Any], aliases: Dict[str, str], where: str) -> Dict[str, Any]:
    """Map the keys of ``data`` onto field names, ignoring case"""
    fields = {}
    for key, value in data.items():
        name = aliases.get(str(key).lower())
        if name is None:
            logger.warning(f"Ignoring unknown key {key!r} in {where}")
            continue
        if name in fields:
            raise ConfigValidationError(f"Duplicate key {key!r} in {where}", field=str(key))
        fields[name] = value
    return fields


def _string_list(value: Any, field: str, peer: str = None) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigValidationError(
            f"{field} must be a list of strings" + (f" (peer {peer})" if peer else ""),
            peer=peer,
            field=field,
        )
    return [item.strip() for item in value]


def _typed_value(value: Any, expected: type, field: str, peer: str) -> Any:
    if expected is list:
        return _string_list(value, field, peer)

    # bool is an int subclass; keep them apart
    if expected is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, expected)

    if not valid:
        raise ConfigValidationError(
            f"Peer {peer}: {field} must be of type {expected.__name__}, got {type(value).__name__}",
            peer=peer,
            field=field,
        )

    if expected is int and value < 0:
        raise ConfigValidationError(
            f"Peer {peer}: {field} must not be negative, got {value}",
            peer=peer,
            field=field,
        )

    return value.strip() if expected is str else value


def _decode_peer(name: str, data: Any) -> PeerRecord:
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Peer {name} must be a mapping", peer=name)

    fields = _canonical_keys(data, PEER_KEYS, f"peer {name}")
    if fields.get("asn") is None:
        raise ConfigValidationError(f"Peer {name} has no ASN", peer=name, field="asn")

    kwargs = {"asn": ParameterValidator.validate_as_number(fields.pop("asn"), peer=name)}
    for field_name, value in fields.items():
        if value is None:
            continue
        kwargs[field_name] = _typed_value(value, PEER_FIELD_TYPES[field_name], field_name, name)

    return PeerRecord(**kwargs)


def decode_config(data: Any, source: str = "configuration") -> GlobalConfig:
    """
    Build a GlobalConfig from already decoded data

    Raises:
        ConfigValidationError: If a key has the wrong shape or type
    """
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{source} must contain a mapping at the top level")

    fields = _canonical_keys(data, GLOBAL_KEYS, source)
    if fields.get("asn") is None:
        raise ConfigValidationError(f"{source} has no ASN", field="asn")

    asn = ParameterValidator.validate_as_number(fields["asn"])

    router_id = fields.get("router_id") or ""
    if not isinstance(router_id, str):
        raise ConfigValidationError(f"router-id must be a string, got {router_id!r}", field="router-id")

    prefixes = fields.get("prefixes") or []
    prefixes = _string_list(prefixes, "prefixes")

    for name in ("irrdb", "rtr_server"):
        value = fields.get(name) or ""
        if not isinstance(value, str):
            raise ConfigValidationError(f"{name} must be a string, got {value!r}", field=name)
        fields[name] = value.strip()

    raw_peers = fields.get("peers") or {}
    if not isinstance(raw_peers, dict):
        raise ConfigValidationError("peers must be a mapping of peer name to peer", field="peers")

    peers = {}
    for name, peer_data in raw_peers.items():
        peers[str(name)] = _decode_peer(str(name), peer_data)

    return GlobalConfig(
        asn=asn,
        router_id=router_id.strip(),
        prefixes=prefixes,
        peers=peers,
        irrdb=fields["irrdb"],
        rtr_server=fields["rtr_server"],
    )


def load_config_file(path: Union[str, Path]) -> GlobalConfig:
    """
    Load the peering configuration from ``path``

    Raises:
        ConfigValidationError: If the file is missing, has an unsupported
            extension, cannot be decoded or has the wrong shape
    """
    path = ParameterValidator.validate_file_exists(path, "config")

    decoder = DECODERS.get(path.suffix.lower())
    if decoder is None:
        raise ConfigValidationError(
            f"Unsupported configuration file type: {path.name}",
            field="config",
            guidance=f"Use one of: {', '.join(SUPPORTED_EXTENSIONS)}",
        )

    try:
        data = decoder(path.read_text())
    except (yaml.YAMLError, tomllib.TOMLDecodeError, ValueError) as e:
        raise ConfigValidationError(
            f"Failed to decode {path}: {e}",
            field="config",
            guidance="Check the file syntax",
        )
    except OSError as e:
        raise ConfigValidationError(f"Cannot read {path}: {e}", field="config")

    config = decode_config(data, str(path))
    logger.info(f"Loaded {len(config.peers)} peers from {path}")
    return config
