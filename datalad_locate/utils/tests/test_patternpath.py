from __future__ import annotations

import pytest

from ..patternpath import PatternPath


def test_absolute_path():
    with pytest.raises(ValueError, match='PatternPath must be relative'):
        PatternPath('/conf/app.cfg')


def test_leaving_root():
    with pytest.raises(ValueError, match='must not leave its root'):
        PatternPath('conf/../../secrets.cfg')


def test_wildcards_are_kept():
    assert str(PatternPath('conf/**/app-*.cfg')) == 'conf/**/app-*.cfg'


def test_backlash_path(monkeypatch):
    warnings = []

    def warning(message):
        warnings.append(message)

    monkeypatch.setattr('datalad_locate.utils.patternpath.lgr.warning', warning)
    PatternPath('conf\\app.cfg')
    assert len(warnings) == 1
    assert 'conf/app.cfg' in warnings[0]
