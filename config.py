import copy
import logging
import os
import yaml

from value_types import FrequencyValueTypes


class StreamingGraphConfig:
    __defaults = {
        "min_span_seconds": 10.0,
        "max_span_seconds": 60.0,
        "segment_count": 30,
        "label_count": 4,
        "refresh_interval": 1.0,
        "auto_start_osc": True,
        "bind_address": "",
        "bind_port": 9000,
        "endpoint": "/frequency",
        "value_type": FrequencyValueTypes.INT.value,
        "logging_level": "info",
        "debug": False,
    }
    __config_logger = logging.getLogger("SG_Config")

    def __init__(self, config_file_path: str):
        self.__config_path = config_file_path
        self.__config = copy.deepcopy(self.__defaults)
        if not os.path.isfile(config_file_path):
            self.__config_logger.info(
                f"Creating default config file: {config_file_path}"
            )
            self.__save()
            return

        self.__config_logger.info(f"Loading config file: {config_file_path}")
        try:
            with open(config_file_path) as yaml_file:
                loaded_config = yaml.safe_load(yaml_file)
        except yaml.YAMLError:
            self.__config_logger.exception(
                "Config file is not valid YAML, using default config"
            )
            return
        self.__config_logger.debug(f"loaded config: {loaded_config}")

        if loaded_config is None:
            # an empty file is treated as "all defaults"
            return
        if not isinstance(loaded_config, dict):
            self.__config_logger.error("Config file is invalid, using default config")
            return

        for key, value in loaded_config.items():
            if key in self.__config:
                self.__config[key] = value
            else:
                self.__config_logger.warning(f"Ignoring unknown config key '{key}'")
        missing = [k for k in self.__defaults if k not in loaded_config]
        if missing:
            self.__config_logger.info(f"Using defaults for missing keys: {missing}")
        self.__config_logger.info("Config file loaded successfully")

    def __save(self):
        if not self.__config_path:
            return
        with open(self.__config_path, "w") as yaml_file:
            yaml.safe_dump(self.__config, yaml_file, sort_keys=False)

    def config(self, name):
        self.__config_logger.debug(f"Retrieving config value for '{name}'")
        return self.__config[name]

    def set(self, name: str | list[str], value):
        names = name if isinstance(name, list) else [name]
        values = value if isinstance(name, list) and isinstance(value, list) else [value]
        if len(names) != len(values):
            self.__config_logger.error(
                f"Number of names ({len(names)}) does not match number of values ({len(values)})"
            )
            raise ValueError(
                f"Number of names ({len(names)}) does not match number of values ({len(values)})"
            )
        for n in names:
            if n not in self.__config.keys():
                self.__config_logger.error(f"Key '{n}' not found in config")
                raise KeyError(f"Key {n} not found in config")
        for i, n in enumerate(names):
            self.__config_logger.debug(
                f"Setting config value for '{n}' to '{values[i]}'"
            )
            self.__config[n] = values[i]
        self.__save()
        return True

    def graph_settings(self) -> tuple[float, float, int, int]:
        """Arguments for ``WindowedAggregator.configure``."""
        return (
            float(self.__config["min_span_seconds"]),
            float(self.__config["max_span_seconds"]),
            int(self.__config["segment_count"]),
            int(self.__config["label_count"]),
        )

    def refresh_interval(self) -> float:
        return float(self.__config["refresh_interval"])

    def logging_level(self) -> int:
        level = str(self.__config["logging_level"]).upper()
        resolved = logging.getLevelName(level)
        if not isinstance(resolved, int):
            self.__config_logger.warning(
                f"Unknown logging level '{level}', falling back to INFO"
            )
            return logging.INFO
        return resolved
