from .parser import parse_manifest_text, load_manifest, dump_manifest
