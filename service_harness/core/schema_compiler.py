"""
Schema Compiler Gateway
=======================

Keeps the wire-format schema and its generated bindings in step:

1. If the schema directory is missing or empty, fetch the submodule that
   provides it.
2. If the primary-language bindings are missing or not strictly newer than
   the schema, regenerate them.
3. On request, compile bindings for a secondary language and load them into
   the current interpreter.

The compiler itself is external; this module only decides when to call it and
with which arguments. Every invocation gets an explicit working directory and
compilation of a given schema directory is serialised with an asyncio lock, so
several services can be set up at once without stepping on each other.
"""

import asyncio
import importlib.util
import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Union

from service_harness.config import HarnessConfig
from service_harness.core.command_runner import CommandRunner
from service_harness.core.errors import CompileFailure, SchemaNotFound, SubmoduleFetchFailure
from service_harness.core.models import BindingArtifact, BindingLanguage, SchemaArtifactPair

logger = logging.getLogger(__name__)


class SchemaCompilerGateway:
    """Decides when to fetch and compile the wire-format schema."""

    def __init__(self, config: HarnessConfig, runner: Optional[CommandRunner] = None):
        self.config = config
        self.runner = runner or CommandRunner()
        self._locks: Dict[Path, asyncio.Lock] = {}

    def _lock_for(self, directory: Path) -> asyncio.Lock:
        key = directory.resolve()
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def artifact_pair(
        self,
        schema_dir: Path,
        language: Union[str, BindingLanguage, None] = None,
    ) -> SchemaArtifactPair:
        """The schema file in ``schema_dir`` and its generated counterpart."""
        lang = BindingLanguage.parse(language or self.config.primary_language)
        return SchemaArtifactPair(
            schema_file=schema_dir / self.config.schema_file_name,
            generated_file=schema_dir / lang.generated_name(self.config.schema_name),
        )

    # -------------------------------------------------------------------------
    # Schema source
    # -------------------------------------------------------------------------

    async def ensure_schema_source_available(
        self, directory: Path, repo_dir: Optional[Path] = None
    ) -> bool:
        """
        Fetch the schema submodule when ``directory`` is absent or empty.

        Args:
            directory: Schema directory inside a checkout.
            repo_dir: Checkout to run git in. Defaults to the parent of
                ``directory``.

        Returns:
            True if a fetch was performed, False if the source was present.

        Raises:
            SubmoduleFetchFailure: If git exits non-zero. No retry is attempted.
        """
        directory = Path(directory)
        if directory.is_dir() and any(directory.iterdir()):
            return False

        repo_dir = Path(repo_dir) if repo_dir else directory.parent
        logger.info(f"Schema directory {directory} is missing or empty, fetching submodules")
        argv = [self.config.git, "submodule", "update", "--init", "--recursive"]
        result = await self.runner.run(argv, cwd=repo_dir, timeout=self.config.git_timeout)
        result.check(SubmoduleFetchFailure)
        return True

    # -------------------------------------------------------------------------
    # Primary-language bindings
    # -------------------------------------------------------------------------

    async def ensure_target_binding_current(
        self,
        schema_file: Path,
        generated_file: Path,
        language: Union[str, BindingLanguage, None] = None,
    ) -> bool:
        """
        Regenerate bindings unless ``generated_file`` is strictly newer than ``schema_file``.

        All schemas in the schema directory are compiled together, from the
        directory's parent, mirroring ``protoc --go_out=. ./myWireFormat/*.proto``.

        Returns:
            True if the compiler ran, False if the bindings were already current.

        Raises:
            SchemaNotFound: If ``schema_file`` does not exist.
            CompileFailure: If the compiler exits non-zero.
        """
        pair = SchemaArtifactPair(Path(schema_file), Path(generated_file))
        schema_dir = pair.schema_file.parent
        lang = BindingLanguage.parse(language or self.config.primary_language)

        async with self._lock_for(schema_dir):
            if not pair.schema_file.exists():
                raise SchemaNotFound(f"Schema definition not found: {pair.schema_file}")
            if pair.is_current():
                logger.debug(f"{pair.generated_file.name} is current, skipping compile")
                return False

            schemas = sorted(schema_dir.glob("*.proto"))
            workdir = schema_dir.parent
            argv = [self.config.compiler, lang.out_flag]
            argv.extend(f"./{schema_dir.name}/{schema.name}" for schema in schemas)

            logger.info(f"Compiling {len(schemas)} schema(s) in {schema_dir} to {lang.value}")
            result = await self.runner.run(argv, cwd=workdir, timeout=self.config.compile_timeout)
            result.check(CompileFailure)
            return True

    async def ensure_service_schema(self, source_dir: Path) -> bool:
        """Make sure a service checkout has its schema and current primary bindings."""
        schema_dir = Path(source_dir) / self.config.schema_dir_name
        await self.ensure_schema_source_available(schema_dir, repo_dir=source_dir)
        pair = self.artifact_pair(schema_dir)
        return await self.ensure_target_binding_current(pair.schema_file, pair.generated_file)

    # -------------------------------------------------------------------------
    # Secondary-language bindings
    # -------------------------------------------------------------------------

    def resolve_schema_dir(self, service: str) -> Path:
        """
        Locate the schema directory a consumer should compile from.

        The suite's own checkout keeps it directly under the harness root;
        every other consumer finds it two levels up.
        """
        root = self.config.harness_root
        if service == self.config.harness_service:
            return self.config.schema_dir
        return (root / ".." / ".." / self.config.schema_dir_name).resolve()

    async def compile_binding_for_language(
        self,
        service: str,
        language: Union[str, BindingLanguage, None] = None,
    ) -> BindingArtifact:
        """
        Regenerate ``language`` bindings for ``service`` and make them usable.

        A stale generated file is removed first so a failed compile can never
        leave an old binding behind. Python bindings are imported and the
        module is returned on the artifact.

        Raises:
            SchemaNotFound: If the schema definition is missing.
            CompileFailure: If the compiler fails or produces no output.
        """
        lang = BindingLanguage.parse(language or self.config.secondary_language)
        schema_dir = self.resolve_schema_dir(service)
        pair = self.artifact_pair(schema_dir, lang)

        async with self._lock_for(schema_dir):
            if not pair.schema_file.exists():
                raise SchemaNotFound(f"Schema definition not found: {pair.schema_file}")

            if pair.generated_file.exists():
                logger.debug(f"Removing stale binding {pair.generated_file}")
                pair.generated_file.unlink()

            argv = [self.config.compiler, lang.out_flag, f"./{pair.schema_file.name}"]
            result = await self.runner.run(argv, cwd=schema_dir, timeout=self.config.compile_timeout)
            result.check(CompileFailure)

            if not pair.generated_file.exists():
                raise CompileFailure(
                    argv, result.returncode, result.stdout, result.stderr,
                    message=f"{self.config.compiler} did not produce {pair.generated_file.name}",
                )

        artifact = BindingArtifact(language=lang, path=pair.generated_file)
        if lang is BindingLanguage.PYTHON:
            artifact.module = self._load_python_binding(pair.generated_file)
        logger.info(f"Compiled {lang.value} bindings for {service}: {pair.generated_file}")
        return artifact

    @staticmethod
    def _load_python_binding(path: Path):
        module_name = path.stem
        spec = importlib.util.spec_from_file_location(module_name, path)
        if not spec or not spec.loader:
            raise ImportError(f"Cannot load generated module from {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(module_name, None)
            raise
        return module
