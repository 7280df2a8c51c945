"""Shared pytest fixtures for the blitzgen test suite.

Provides reusable fixtures for:
- A miniature copy of the template tree (manifests, API sources, schema,
  web config, env examples and every feature-excluded path)
- A gzipped tarball of that tree, laid out like a codeload snapshot
- ``httpx.MockTransport`` instances serving the tarball
- Ready-made ``ProjectOptions`` / ``TemplateVariables``
"""

from __future__ import annotations

import io
import json
import tarfile
import textwrap
from pathlib import Path

import httpx
import pytest

from blitzgen.config import Config
from blitzgen.features import FEATURE_EXCLUSIONS, FeatureOptions
from blitzgen.models import ProjectOptions, TemplateVariables


ARCHIVE_TOP_LEVEL = "blitzpack-main"


# ---------------------------------------------------------------------------
# Template sources
# ---------------------------------------------------------------------------

ROOT_PACKAGE_JSON = {
    "name": "blitzpack",
    "version": "1.4.2",
    "private": True,
    "description": "Production-ready full-stack TypeScript monorepo",
    "repository": {"type": "git", "url": "https://github.com/CarboxyDev/blitzpack"},
    "homepage": "https://blitzpack.dev",
    "scripts": {
        "dev": "turbo dev",
        "build": "turbo build",
        "typecheck": "turbo typecheck",
        "test": "turbo test",
        "test:unit": "turbo test:unit",
        "test:integration": "turbo test:integration",
        "test:watch": "turbo test:watch",
        "test:coverage": "turbo test:coverage",
        "test:parallel": "turbo test --concurrency=4",
        "init:project": "node scripts/init.mjs",
        "db:migrate": "pnpm --filter api db:migrate",
    },
    "devDependencies": {
        "@testing-library/jest-dom": "^6.6.3",
        "@testing-library/react": "^16.3.0",
        "@testing-library/user-event": "^14.6.1",
        "@vitest/coverage-v8": "^3.2.4",
        "husky": "^9.1.7",
        "jsdom": "^26.1.0",
        "turbo": "^2.5.4",
        "typescript": "^5.8.3",
        "vitest": "^3.2.4",
    },
    "packageManager": "pnpm@10.12.1",
}

API_PACKAGE_JSON = {
    "name": "api",
    "version": "0.0.0",
    "private": True,
    "type": "module",
    "scripts": {
        "dev": "tsx watch src/server.ts",
        "build": "tsc",
        "test": "vitest run",
        "test:unit": "vitest run --project unit",
        "test:integration": "vitest run --project integration",
        "db:migrate": "prisma migrate dev",
    },
    "dependencies": {
        "@aws-sdk/client-s3": "^3.830.0",
        "@prisma/client": "^6.10.1",
        "fastify": "^5.4.0",
        "sharp": "^0.34.2",
    },
    "devDependencies": {
        "prisma": "^6.10.1",
        "vite-tsconfig-paths": "^5.1.4",
        "vitest": "^3.2.4",
    },
}

WEB_PACKAGE_JSON = {
    "name": "web",
    "version": "0.0.0",
    "private": True,
    "scripts": {
        "dev": "next dev",
        "build": "next build",
        "test": "vitest run",
        "test:watch": "vitest",
    },
    "dependencies": {"next": "15.3.4", "react": "19.1.0"},
    "devDependencies": {"vitest": "^3.2.4", "vite-tsconfig-paths": "^5.1.4"},
}

TURBO_JSON = {
    "$schema": "https://turbo.build/schema.json",
    "tasks": {
        "build": {"dependsOn": ["^build"], "outputs": ["dist/**", ".next/**"]},
        "dev": {"cache": False, "persistent": True},
        "typecheck": {"dependsOn": ["^build"]},
        "test": {"dependsOn": ["^build"]},
        "test:unit": {"dependsOn": ["^build"]},
        "test:integration": {"dependsOn": ["^build"]},
        "test:watch": {"cache": False, "persistent": True},
        "test:coverage": {"dependsOn": ["^build"]},
    },
}

APP_TS = textwrap.dedent("""\
    import Fastify from 'fastify';

    import { loadEnv } from '@/config/env';
    // @feature admin
    import { metricsService } from '@/services/metrics.service';
    // @endfeature

    const env = loadEnv();

    export const app = Fastify({ logger: env.NODE_ENV !== 'test' });

    app.addHook('onResponse', async (request, reply) => {
      const responseTime = reply.elapsedTime;
      // @feature admin
      metricsService.recordRequest(responseTime, reply.statusCode);
      // @endfeature
      request.log.info({ responseTime }, 'request completed');
    });

    const { default: usersRoutes } = await import('@/routes/users.js');
    // @feature uploads
    const { default: uploadsRoutes } = await import('@/routes/uploads.js');
    const { default: uploadsServeRoutes } =
      await import('@/routes/uploads-serve.js');
    // @endfeature
    const { default: accountsRoutes } = await import('@/routes/accounts.js');
    // @feature admin
    const { default: statsRoutes } = await import('@/routes/stats.js');
    const { default: metricsRoutes } = await import('@/routes/metrics.js');
    const { default: adminSessionsRoutes } =
      await import('@/routes/admin-sessions.js');

    metricsService.start();
    // @endfeature

    // @feature uploads
    await app.register(uploadsServeRoutes);
    // @endfeature

    await app.register(
      async (app) => {
        await app.register(usersRoutes);
        // @feature uploads
        await app.register(uploadsRoutes);
        // @endfeature
        await app.register(accountsRoutes);
        // @feature admin
        await app.register(statsRoutes);
        await app.register(metricsRoutes);
        await app.register(adminSessionsRoutes);
        // @endfeature
      },
      { prefix: '/api' }
    );
""")

# An older revision of app.ts without feature markers.
LEGACY_APP_TS = textwrap.dedent("""\
    import Fastify from 'fastify';
    import { metricsService } from '@/services/metrics.service';

    export const app = Fastify();

    app.addHook('onResponse', async (request, reply) => {
      const responseTime = reply.elapsedTime;
      metricsService.recordRequest(responseTime, reply.statusCode);
    });

    const { default: usersRoutes } = await import('@/routes/users.js');
    const { default: uploadsRoutes } = await import('@/routes/uploads.js');
    const { default: uploadsServeRoutes } = await import(
      '@/routes/uploads-serve.js'
    );
    const { default: statsRoutes } = await import('@/routes/stats.js');
    const { default: metricsRoutes } = await import('@/routes/metrics.js');
    const { default: adminSessionsRoutes } = await import(
      '@/routes/admin-sessions.js'
    );

    metricsService.start();

    await app.register(uploadsServeRoutes);

    await app.register(
      async (app) => {
        await app.register(usersRoutes);
        await app.register(uploadsRoutes);
        await app.register(statsRoutes);
        await app.register(metricsRoutes);
        await app.register(adminSessionsRoutes);
      },
      { prefix: '/api' }
    );
""")

SERVICES_TS = textwrap.dedent("""\
    import type { FastifyPluginAsync } from 'fastify';
    import fp from 'fastify-plugin';

    // @feature uploads
    import { FileStorageService } from '@/services/file-storage.service';
    // @endfeature
    // @feature admin
    import { StatsService } from '@/services/stats.service';
    // @endfeature
    // @feature uploads
    import { UploadsService } from '@/services/uploads.service';
    // @endfeature
    import { UsersService } from '@/services/users.service';

    declare module 'fastify' {
      interface FastifyInstance {
        usersService: UsersService;
        // @feature uploads
        fileStorageService: FileStorageService;
        uploadsService: UploadsService;
        // @endfeature
        // @feature admin
        statsService: StatsService;
        // @endfeature
      }
    }

    const servicesPlugin: FastifyPluginAsync = async (app) => {
      // @feature uploads
      const fileStorageService = new FileStorageService(env, app.logger);
      // @endfeature
      const usersService = new UsersService(app.prisma, app.logger);
      // @feature uploads
      const uploadsService = new UploadsService(
        app.prisma,
        fileStorageService,
        app.logger
      );
      // @endfeature
      // @feature admin
      const statsService = new StatsService(app.prisma, app.logger);
      // @endfeature

      app.decorate('usersService', usersService);
      // @feature uploads
      app.decorate('fileStorageService', fileStorageService);
      app.decorate('uploadsService', uploadsService);
      // @endfeature
      // @feature admin
      app.decorate('statsService', statsService);
      // @endfeature
    };

    export default fp(servicesPlugin);
""")

LEGACY_SERVICES_TS = textwrap.dedent("""\
    import { FileStorageService } from '@/services/file-storage.service';
    import { StatsService } from '@/services/stats.service';
    import { UploadsService } from '@/services/uploads.service';
    import { UsersService } from '@/services/users.service';

    declare module 'fastify' {
      interface FastifyInstance {
        usersService: UsersService;
        fileStorageService: FileStorageService;
        uploadsService: UploadsService;
        statsService: StatsService;
      }
    }

    const servicesPlugin: FastifyPluginAsync = async (app) => {
      const fileStorageService = new FileStorageService(env, app.logger);
      const usersService = new UsersService(app.prisma, app.logger);
      const uploadsService = new UploadsService(
        app.prisma,
        fileStorageService,
        app.logger
      );
      const statsService = new StatsService(app.prisma, app.logger);

      app.decorate('usersService', usersService);
      app.decorate('fileStorageService', fileStorageService);
      app.decorate('uploadsService', uploadsService);
      app.decorate('statsService', statsService);
    };
""")

SCHEMA_PRISMA = textwrap.dedent("""\
    generator client {
      provider = "prisma-client-js"
    }

    model User {
      id        String   @id @default(cuid())
      email     String   @unique
      uploads   Upload[]
      createdAt DateTime @default(now())
    }

    model Upload {
      id        String   @id @default(cuid())
      userId    String
      user      User     @relation(fields: [userId], references: [id])
      key       String
      createdAt DateTime @default(now())
    }

    model Session {
      id     String @id
      userId String
    }
""")

SITE_TS = textwrap.dedent("""\
    export const siteConfig = {
      name: 'Blitzpack',
      description: 'Production-ready full-stack TypeScript monorepo',
      links: {
        github: 'https://github.com/CarboxyDev/blitzpack',
      },
    };
""")

LAYOUT_TSX = textwrap.dedent("""\
    import type { Metadata } from 'next';

    export const metadata: Metadata = {
      title: 'Blitzpack',
      description: 'Production-ready full-stack TypeScript monorepo',
    };
""")

SWAGGER_TS = textwrap.dedent("""\
    await app.register(swagger, {
      openapi: {
        info: {
          title: 'Blitzpack API',
          description: 'Production-ready TypeScript API built with Fastify',
          version: '1.0.0',
        },
      },
    });
""")

PRE_PUSH = "pnpm typecheck\npnpm test:unit\n"

TEMPLATE_FILES: dict[str, str] = {
    "package.json": json.dumps(ROOT_PACKAGE_JSON, indent=2) + "\n",
    "apps/api/package.json": json.dumps(API_PACKAGE_JSON, indent=2) + "\n",
    "apps/web/package.json": json.dumps(WEB_PACKAGE_JSON, indent=2) + "\n",
    "turbo.json": json.dumps(TURBO_JSON, indent=2) + "\n",
    "apps/api/src/app.ts": APP_TS,
    "apps/api/src/plugins/services.ts": SERVICES_TS,
    "apps/api/prisma/schema.prisma": SCHEMA_PRISMA,
    "apps/web/src/config/site.ts": SITE_TS,
    "apps/web/src/app/layout.tsx": LAYOUT_TSX,
    "apps/api/src/plugins/swagger.ts": SWAGGER_TS,
    "README.md": "# Blitzpack\n\nThe template README.\n",
    ".husky/pre-push": PRE_PUSH,
    "apps/web/.env.example": "NEXT_PUBLIC_API_URL=http://localhost:8080\n",
    "apps/api/.env.example": "DATABASE_URL=postgresql://localhost:5432/app\n",
    "apps/api/src/routes/users.ts": "export default async function usersRoutes() {}\n",
    "create-blitzpack/package.json": '{"name": "create-blitzpack"}\n',
    "apps/marketing/package.json": '{"name": "marketing"}\n',
    "Dockerfile": "FROM node:22-alpine\n",
}


def write_template_tree(root: Path) -> Path:
    """Materialise the miniature template under *root*."""
    for rel, content in TEMPLATE_FILES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    for paths in FEATURE_EXCLUSIONS.values():
        for rel in paths:
            path = root / rel
            if path.exists():
                continue
            name = Path(rel).name
            if Path(rel).suffix in {".ts", ".tsx", ".js", ".yml"} or name.startswith("Dockerfile"):
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(f"// {rel}\n", encoding="utf-8")
            else:
                path.mkdir(parents=True, exist_ok=True)
                (path / "index.ts").write_text(f"// {rel}\n", encoding="utf-8")
    return root


def build_tarball(root: Path, top_level: str = ARCHIVE_TOP_LEVEL) -> bytes:
    """Gzip *root* the way codeload does: everything under one folder."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        tar.add(str(root), arcname=top_level)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """A miniature template tree on disk."""
    return write_template_tree(tmp_path / "template")


@pytest.fixture
def template_tarball(template_dir: Path) -> bytes:
    """The miniature template as ``.tar.gz`` bytes."""
    return build_tarball(template_dir)


@pytest.fixture
def template_archive(tmp_path: Path, template_tarball: bytes) -> Path:
    """The miniature template tarball written to disk."""
    path = tmp_path / "blitzpack-main.tar.gz"
    path.write_bytes(template_tarball)
    return path


@pytest.fixture
def tarball_transport(template_tarball: bytes) -> httpx.MockTransport:
    """Transport answering every request with the template tarball."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=template_tarball)

    return httpx.MockTransport(handler)


@pytest.fixture
def archive_config(template_archive: Path) -> Config:
    """Config pointing at the local template archive."""
    return Config(template_archive=template_archive)


@pytest.fixture
def variables() -> TemplateVariables:
    return TemplateVariables.from_name("My App", "A thing I am building")


@pytest.fixture
def project_options(tmp_path: Path) -> ProjectOptions:
    """Options for ``my-app`` with testing disabled, nothing bootstrapped."""
    return ProjectOptions(
        project_name="my-app",
        target_dir=tmp_path / "out" / "my-app",
        features=FeatureOptions(testing=False),
        skip_git=True,
        skip_install=True,
    )
