# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import tomllib
from pathlib import Path

from attestwire import __info__

project_root = Path(__file__).parent.parent


class TestPackageMetadata:

    def test_project_table(self) -> None:
        with (project_root / 'pyproject.toml').open('rb') as file:
            project = tomllib.load(file)['project']
        assert project['name'] == 'attestwire'
        assert 'readme' not in project
        assert project['dynamic'] == ['version']

    def test_info(self) -> None:
        assert __info__.__version__.count('.') == 2
        assert __info__.__license__ == 'AGPLv3+'
        assert not hasattr(__info__, '__webpage__')
