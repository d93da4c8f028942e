# frontend.py
# Thin wrapper over espo-frontend-build-tools and terser (installed in the
# extension repo's node_modules). All transpiling, bundling and minifying
# happens in node; this module only assembles the options.
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional

from .config import ExtensionParams
from .executor import Executor
from .files import delete_dir

OPTIONS_ENV = "ESPOBUILD_OPTIONS"

_TRANSPILE_JS = """
import {Transpiler} from 'espo-frontend-build-tools';
const options = JSON.parse(process.env.ESPOBUILD_OPTIONS);
(new Transpiler(options)).process();
"""

_BUNDLE_JS = """
import {Bundler} from 'espo-frontend-build-tools';
import {minify} from 'terser';
const o = JSON.parse(process.env.ESPOBUILD_OPTIONS);
const result = (new Bundler(o.config, [], o.filePattern)).bundle();
const out = {};
for (const [name, code] of Object.entries(result)) {
    out[name] = o.minify.includes(name) ? (await minify(code)).code : code;
}
process.stdout.write(JSON.stringify(out));
"""

_TEMPLATES_JS = """
import {TemplateBundler} from 'espo-frontend-build-tools';
const options = JSON.parse(process.env.ESPOBUILD_OPTIONS);
(new TemplateBundler(options)).process();
"""

LICENSE_HEADER = "/**LICENSE**/\n"


class Frontend:
    def __init__(self, executor: Executor, cwd: Path, extension: ExtensionParams):
        self.executor = executor
        self.cwd = cwd
        self.extension = extension

    @property
    def mod(self) -> str:
        return self.extension.mod

    @property
    def src_prefix(self) -> str:
        """Path prefix (relative to src/files) of the module's frontend sources."""
        return f"client/custom/modules/{self.mod}/src/"

    @property
    def transpiled_dir(self) -> Path:
        return self.cwd / "build" / "assets" / "transpiled"

    def _node(self, script: str, options: dict, *, capture: bool = False) -> Optional[str]:
        cmd = ["node", "--input-type=module", "-e", script]
        env = {OPTIONS_ENV: json.dumps(options)}
        if capture:
            return self.executor.output(cmd, self.cwd, env=env)
        self.executor.run(cmd, self.cwd, quiet=True, env=env)
        return None

    def transpile(self, file: Optional[str] = None) -> bool:
        """
        Transpile the module's ES sources into build/assets/transpiled.

        With `file` (relative to src/files) only that file is transpiled and
        the previous output is kept. Returns False when nothing was done.
        """
        if not self.extension.bundled:
            return False
        if file and not file.startswith(self.src_prefix):
            return False

        if not file:
            delete_dir(self.transpiled_dir / "custom")

        options = {
            "path": f"src/files/client/custom/modules/{self.mod}",
            "mod": self.mod,
            "destDir": "build/assets/transpiled/custom",
        }
        if file:
            options["file"] = f"src/files/{file}"

        self._node(_TRANSPILE_JS, options)
        return True

    def chunk_name(self) -> str:
        return f"module-{self.mod}"

    def bundle(self) -> Dict[str, str]:
        """Bundle transpiled sources; returns chunk name -> source."""
        mod = self.mod
        chunk = self.chunk_name()
        pattern = f"custom/modules/{mod}/src/**/*.js"

        config = {
            "order": ["init", chunk],
            "basePath": "src/files/client",
            "transpiledPath": "build/assets/transpiled",
            "modulePaths": {mod: f"custom/modules/{mod}"},
            "lookupPatterns": [pattern],
            "chunks": {
                "init": {},
                chunk: {
                    "patterns": [pattern],
                    "mapDependencies": True,
                    "requires": self.extension.bundle.requires,
                },
            },
        }
        options = {
            "config": config,
            "filePattern": f"client/custom/modules/{mod}/lib/{{*}}.js",
            "minify": [chunk],
        }
        raw = self._node(_BUNDLE_JS, options, capture=True)
        chunks = json.loads(raw or "{}")
        if chunk in chunks:
            chunks[chunk] = LICENSE_HEADER + chunks[chunk]
        return chunks

    def bundle_templates(self, dest: str) -> None:
        options = {
            "dirs": [f"src/files/client/custom/modules/{self.mod}/res/templates"],
            "dest": dest,
            "clientDir": "src/files/client",
        }
        self._node(_TEMPLATES_JS, options)
