from rulebook.config.config import Config, Registry, write_json_atomic


__all__ = ["Config", "Registry", "write_json_atomic"]
