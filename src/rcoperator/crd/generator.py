"""CRD manifest generation from the registered pydantic models."""

import logging
from pathlib import Path

import yaml

from .registry import CRDRegistry

logger = logging.getLogger(__name__)

# Version persisted by the API server when a kind serves several versions
STORAGE_VERSIONS = {
    "RuntimeComponent": "v1beta2",
}

CONDITION_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "status": {"type": "string"},
        "reason": {"type": "string"},
        "message": {"type": "string"},
        "lastTransitionTime": {"type": "string", "format": "date-time"},
        "lastUpdateTime": {"type": "string", "format": "date-time"},
    },
    "required": ["type", "status"],
}


class OpenAPIConverter:
    """Convert pydantic schemas to OpenAPI v3 compatible schemas for CRDs."""

    @staticmethod
    def convert_schema(pydantic_schema):
        openapi_schema = {"type": "object", "properties": {}}

        if "properties" in pydantic_schema:
            openapi_schema["properties"] = OpenAPIConverter._convert_properties(
                pydantic_schema["properties"], pydantic_schema.get("$defs", {})
            )

        if "required" in pydantic_schema:
            openapi_schema["required"] = pydantic_schema["required"]

        return openapi_schema

    @staticmethod
    def _convert_properties(properties, defs):
        return {
            name: OpenAPIConverter._convert_property(schema, defs)
            for name, schema in properties.items()
        }

    @staticmethod
    def _convert_property(prop_schema, defs):
        if "$ref" in prop_schema:
            def_name = prop_schema["$ref"].replace("#/$defs/", "")
            if def_name in defs:
                return OpenAPIConverter._convert_property(defs[def_name], defs)

        # Optional[X] is rendered by pydantic as anyOf [X, null]
        if "anyOf" in prop_schema:
            options = [s for s in prop_schema["anyOf"] if s.get("type") != "null"]
            if len(options) == 1:
                converted = OpenAPIConverter._convert_property(options[0], defs)
                if "description" in prop_schema:
                    converted.setdefault("description", prop_schema["description"])
                return converted

        prop_type = prop_schema.get("type")

        if prop_type == "array":
            converted = {"type": "array"}
            if "items" in prop_schema:
                converted["items"] = OpenAPIConverter._convert_property(
                    prop_schema["items"], defs
                )
            return converted

        if prop_type == "object":
            converted = {"type": "object"}
            if "properties" in prop_schema:
                converted["properties"] = OpenAPIConverter._convert_properties(
                    prop_schema["properties"], defs
                )
            if "required" in prop_schema:
                converted["required"] = prop_schema["required"]
            if "additionalProperties" in prop_schema and isinstance(
                prop_schema["additionalProperties"], dict
            ):
                converted["additionalProperties"] = OpenAPIConverter._convert_property(
                    prop_schema["additionalProperties"], defs
                )
            else:
                converted["x-kubernetes-preserve-unknown-fields"] = True
            return converted

        result = {}
        for field in ("type", "description", "default", "enum", "format"):
            if field in prop_schema and prop_schema[field] is not None:
                result[field] = prop_schema[field]

        if not result.get("type"):
            result["type"] = "object"
            result["x-kubernetes-preserve-unknown-fields"] = True

        return result


class CRDManager:
    """Builds one CustomResourceDefinition per kind, one entry per version."""

    def __init__(self, output_dir=None):
        self.output_dir = Path(output_dir or "crds/generated")
        self.registry = CRDRegistry()
        self.converter = OpenAPIConverter()

    def _models_by_kind(self):
        kinds = {}
        for model_info in self.registry.get_all_models().values():
            kinds.setdefault((model_info["group"], model_info["kind"]), []).append(
                model_info
            )
        return kinds

    def _version_entry(self, model_info, storage):
        schema = model_info["model"].model_json_schema()
        return {
            "name": model_info["version"],
            "served": True,
            "storage": storage,
            "schema": {
                "openAPIV3Schema": {
                    "type": "object",
                    "properties": {
                        "spec": self.converter.convert_schema(schema),
                        "status": {
                            "type": "object",
                            "properties": {
                                "conditions": {
                                    "type": "array",
                                    "items": CONDITION_SCHEMA,
                                },
                                "observedGeneration": {"type": "integer"},
                            },
                            "x-kubernetes-preserve-unknown-fields": True,
                        },
                    },
                    "required": ["spec"],
                }
            },
            "subresources": {"status": {}},
        }

    def generate_crd_definition(self, model_infos):
        """Build the CRD for every registered version of one kind."""
        first = model_infos[0]
        kind = first["kind"]
        versions = sorted(info["version"] for info in model_infos)
        storage_version = STORAGE_VERSIONS.get(kind, versions[-1])

        return {
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": f"{first['plural']}.{first['group']}"},
            "spec": {
                "group": first["group"],
                "versions": [
                    self._version_entry(info, info["version"] == storage_version)
                    for info in sorted(model_infos, key=lambda i: i["version"])
                ],
                "scope": first["scope"],
                "names": {
                    "plural": first["plural"],
                    "singular": first["singular"],
                    "kind": kind,
                },
            },
        }

    def get_crds_as_dict(self):
        crds = {}
        for model_infos in self._models_by_kind().values():
            crd = self.generate_crd_definition(model_infos)
            crds[crd["metadata"]["name"]] = crd
        return crds

    def generate_all_crds(self):
        """Write one YAML file per CRD plus a kustomization.

        Returns:
            list: Names of the generated files
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        filenames = []
        for name, crd in sorted(self.get_crds_as_dict().items()):
            filename = f"{name}.yaml"
            with open(self.output_dir / filename, "w") as f:
                yaml.dump(crd, f, default_flow_style=False, sort_keys=False)
            filenames.append(filename)
            logger.info(f"Generated CRD: {filename}")

        kustomization = {
            "apiVersion": "kustomize.config.k8s.io/v1beta1",
            "kind": "Kustomization",
            "resources": filenames,
        }
        with open(self.output_dir / "kustomization.yaml", "w") as f:
            yaml.dump(kustomization, f, default_flow_style=False)

        return filenames
