"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
specwatch - Swagger documents inferred from live traffic
Observes requests flowing through a Starlette/FastAPI server and builds its API description
"""

__version__ = "0.1.0"

from specwatch.generator import SpecGenerator, get_spec, init, set_package_info_path

__all__ = ["SpecGenerator", "get_spec", "init", "set_package_info_path", "__version__"]
