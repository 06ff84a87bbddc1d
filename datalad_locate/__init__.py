"""DataLad locate extension"""

from __future__ import annotations

from datalad_locate._version import __version__

__all__ = [
    '__version__',
    'all_roots_prefix',
    'archive_schemes',
    'archive_separator',
    'command_suite',
    'file_scheme',
    'jobs_config_key',
    'lenient_config_key',
    'roots_config_key',
    'single_root_prefix',
]


# Defines a datalad command suite.
# This variable must be bound as a setuptools entrypoint
# to be found by datalad
command_suite = (
    # description of the command suite, displayed in cmdline help
    'DataLad locate command suite',
    [
        # specification of a command, any number of commands can be defined
        (
            # importable module that contains the command implementation
            'datalad_locate.commands.locate_cmd',
            # name of the command class implementation in above module
            'Locate',
            # optional name of the command in the cmdline API
            'locate',
            # optional name of the command in the Python API
            'locate',
        ),
    ],
)


all_roots_prefix = 'classpath*:'
single_root_prefix = 'classpath:'
file_scheme = 'file:'
# `jar:` is accepted as an alias of `zip:`
archive_schemes = ('zip:', 'jar:', 'tar:')
archive_separator = '!/'

roots_config_key = 'datalad.locate.roots'
lenient_config_key = 'datalad.locate.lenient'
jobs_config_key = 'datalad.locate.jobs'
