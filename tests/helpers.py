# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
import hashlib
import pathlib
import shutil

SLACKBUILD = """\
#!/bin/sh
PRGNAM={name}
VERSION=${{VERSION:-{version}}}
BUILD=${{BUILD:-{build}}}
TAG=${{TAG:-_dlack}}

if [ -z "$ARCH" ]; then
  case "$( uname -m )" in
    i?86) ARCH=i586 ;;
    arm*) ARCH=arm ;;
       *) ARCH=$( uname -m ) ;;
  esac
fi
echo "Building $PRGNAM $VERSION"
"""


def md5(data):
    return hashlib.md5(data).hexdigest()


def info_text(name, version="1.0", downloads=(), checksums=(), homepage=None):
    if homepage is None:
        homepage = f"https://example.com/{name}"
    return (
        f'PKGNAM="{name}"\n'
        f'VERSION="{version}"\n'
        f'HOMEPAGE="{homepage}"\n'
        f'DOWNLOAD="{" ".join(downloads)}"\n'
        f'MD5SUM="{" ".join(checksums)}"\n'
    )


class Repository:
    def __init__(self, root_dir):
        self.root_dir = pathlib.Path(root_dir)

    def make_repository(self):
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def destroy_repository(self):
        # Make sure the repository is torn down properly
        if self.root_dir.exists():
            shutil.rmtree(self.root_dir, ignore_errors=True)

    def add_file(self, name, contents, *relpath, binary=False):
        file_path = (self.root_dir / pathlib.Path(*relpath) / name).resolve()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if binary:
            file_path.write_bytes(contents)
        else:
            file_path.write_text(contents)
        return file_path

    def add_package(
        self,
        name,
        version="1.0",
        downloads=(),
        checksums=(),
        build="1",
        slackbuild=None,
        info=None,
    ):
        if info is None:
            info = info_text(name, version, downloads, checksums)
        if slackbuild is None:
            slackbuild = SLACKBUILD.format(name=name, version=version, build=build)
        self.add_file(f"{name}.info", info, name)
        self.add_file(f"{name}.SlackBuild", slackbuild, name)
        return self.root_dir / name

    def add_compile_order(self, *entries, name="compile-order"):
        return self.add_file(name, "".join(f"{_}\n" for _ in entries))

    def __enter__(self):
        self.make_repository()
        return self

    def __exit__(self, *exc):
        self.destroy_repository()
