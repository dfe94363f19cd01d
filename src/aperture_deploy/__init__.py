"""aperture-deploy.

A small CLI that triggers build/deploy workflows on an OpenAperture server:
- credentials resolved from a local file or the environment
- workflow create / execute / status against the REST API
- optional polling until the workflow completes or fails
"""

__version__ = "0.3.0"

from aperture_deploy.config import DeploySettings

__all__ = ["__version__", "DeploySettings"]
