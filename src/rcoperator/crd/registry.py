"""Lookup table from group/version/kind to the pydantic model serving it."""

import logging

logger = logging.getLogger(__name__)


def model_key(group, version, kind):
    return f"{group}/{version}/{kind}"


class CRDRegistry:
    """Served custom resource versions and their spec models.

    Models add themselves at import time through `register`; every
    instance reads the same table.
    """

    _models = {}

    @classmethod
    def register(cls, group, version, kind, plural=None, scope="Namespaced"):
        """Class decorator serving `model_class` as `group/version` `kind`.

        Args:
            group: API group, e.g. 'rc.app.stacks'
            version: API version, e.g. 'v1beta2'
            kind: Resource kind, e.g. 'RuntimeComponent'
            plural: Plural resource name, defaults to the lowercased kind plus 's'
            scope: 'Namespaced' or 'Cluster'
        """
        plural = plural or f"{kind.lower()}s"
        key = model_key(group, version, kind)

        def decorator(model_class):
            previous = cls._models.get(key)
            if previous is not None and previous["model"] is not model_class:
                logger.warning(
                    f"{key} was served by {previous['model'].__name__}, "
                    f"now by {model_class.__name__}"
                )

            model_class._crd_key = key
            cls._models[key] = {
                "model": model_class,
                "group": group,
                "version": version,
                "kind": kind,
                "plural": plural,
                "singular": kind.lower(),
                "scope": scope,
            }
            logger.debug(f"Registered CRD model {model_class.__name__} for {key}")
            return model_class

        return decorator

    def get_all_models(self):
        return dict(self._models)

    def get_model_by_key(self, group, version, kind):
        return self._models.get(model_key(group, version, kind))

    def get_model_for_api_version(self, api_version, kind):
        """Model for a resource body's 'apiVersion' and kind, or None."""
        group, _, version = api_version.rpartition("/")
        return self.get_model_by_key(group, version, kind)

    def get_versions(self, group, kind):
        return sorted(
            info["version"]
            for info in self._models.values()
            if info["group"] == group and info["kind"] == kind
        )

    def list_registered_models(self):
        return list(self._models)
