import os, os.path, sys, argparse, re, logging
from collections import namedtuple

import requests
import tomli

from . import __version__
from .auth import get_client, validate_client, TokenRequiredError, TokenInvalidError
from .client import PutioAPIError, DEFAULT_TIMEOUT, ROOT_FOLDER_ID, api_error_message, api_error_status
from .ops import get_file_names, get_download_urls, add_transfers, valid_urls, parse_id

log = logging.getLogger(__name__)

# Preliminaries {{{1

progname = os.environ.get("PUTIOTOOLS_PROGNAME", os.path.basename(sys.argv[0]))

general_usage = """\
usage: {progname} [-flags] [subcommand] [args]

  You can set your token via the PUTIO_TOKEN environment variable or the
  [auth] table of {config_file}, unless you pass it via -t or -token.

flags:

  -help, -h                           display help
  -version, -v                        display version ({version})
  -color, -c                          enable color output
  -token, -t                          set put.io token
  -debug, -d                          log API calls to stderr

subcommands:

  list FOLDERID                       list files under FOLDERID (default: 0, the root folder)
  list -delete FILEID FOLDERID        first delete FILEID, then list files under FOLDERID
  list -id FOLDERID                   list files under FOLDERID as file ids
  list -url FOLDERID                  list files under FOLDERID as download URLs

  upload url URL URL URL...           tell put.io to download the given URL(s)

  delete FILEID FILEID...             delete the given FILEIDs
  move FILEID FILEID... FOLDERID      move the given FILEIDs into FOLDERID

examples:

  $ {progname} -t YOURTOKEN list
  $ {progname} -t YOURTOKEN -c list FOLDERID
  $ {progname} -t YOURTOKEN -c list -delete FILEID FOLDERID
  $ {progname} -t YOURTOKEN upload url https://example.com/a.iso https://example.com/b.iso
  $ {progname} -t YOURTOKEN -c move FILEID FILEID FOLDERID
  $ {progname} -t YOURTOKEN -c delete FILEID FILEID
"""

# The user can override the default ~/.putiotools directory by setting $PUTIOTOOLS_DIR {{{2
def get_config_file(environ=os.environ):
    config_dir = environ.get("PUTIOTOOLS_DIR", os.path.expanduser("~/.putiotools"))
    return os.path.join(config_dir, "putiotools.toml")

# }}}1

# Support functions and classes {{{1

# Errors {{{2

class ConfigError(Exception):
    pass

class MissingArgsError(Exception):
    def __init__(self, msg="you need to provide args"):
        super().__init__(msg)

class InvalidArgsError(Exception):
    pass

# Config and load_config() {{{2

# Everything a command needs to know about how it was invoked. Built once in
# main() and never modified afterwards.
Config = namedtuple('Config', 'token color timeout debug',
                    defaults=(False, DEFAULT_TIMEOUT, False))

def read_config_file(config_file):
    if not os.path.exists(config_file):
        return {}
    try:
        with open(config_file, 'rb') as f:
            return tomli.load(f)
    except tomli.TOMLDecodeError as ex:
        raise ConfigError(f"Cannot parse '{config_file}': {ex}") from ex

# Token precedence is -token flag, then $PUTIO_TOKEN, then the config file.
def load_config(options, environ=os.environ, config_file=None):
    config = read_config_file(config_file or get_config_file(environ))
    auth_table = config.get('auth', {})
    config_table = config.get('config', {})
    token = options.token or environ.get('PUTIO_TOKEN') or auth_table.get('token') or ''
    timeout = config_table.get('request-timeout', DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"request-timeout must be a positive number, not {timeout!r}")
    return Config(token=str(token).strip(),
                  color=bool(options.color or config_table.get('color', False)),
                  timeout=float(timeout),
                  debug=bool(options.debug))

# configure_logging() {{{2

def configure_logging(debug):
    if debug:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr,
                            format='%(asctime)s %(name)s %(levelname)s: %(message)s')
    else:
        # Prevent putiopy and urllib3 from spewing request messages
        logging.getLogger('putiopy').setLevel(logging.CRITICAL)
        logging.getLogger('urllib3').setLevel(logging.CRITICAL)

# ANSI and Colorizer {{{2

class ANSI:
    DEFAULT = '\x1b[0m'
    BOLD = '\x1b[1m'
    RED = '\x1b[31m'
    YELLOW = '\x1b[33m'
    BLUE = '\x1b[34m'
    WHITE = '\x1b[37m'

ANSI_RE = re.compile(r'\x1b\[[0-9;]*m')

# Wraps text in ANSI codes, or leaves it alone when color is off.
class Colorizer:
    def __init__(self, enabled):
        self.enabled = enabled

    def __call__(self, text, *codes):
        text = str(text)
        if not self.enabled or not codes:
            return text
        return ''.join(codes) + text + ANSI.DEFAULT

def visible_len(text):
    return len(ANSI_RE.sub('', text))

# byte_count_si() {{{2

# Human-readable size using powers of 1000: 999 -> "999 B", 1500000 -> "1.5 MB"

def byte_count_si(b):
    unit = 1000
    if b < unit:
        return f"{b} B"
    div, exp = unit, 0
    n = b // unit
    # Past exabytes everything stays in EB
    while n >= unit and exp < 5:
        div *= unit
        exp += 1
        n //= unit
    return f"{b / div:.1f} {'kMGTPE'[exp]}B"

# print_table()    {{{2

# Print a pretty table of `rows` under `headers`.
#
#   rows             : a sequence of sequences of str, one value per column
#   headers          : the header text of each column
#   colgap           : number of spaces between each column
#   print_header     : print the headers above the rows
#   no_leader_cols   : indexes of columns that will not have leaders appended
#   right_cols       : indexes of columns whose values are right-aligned
#   output_file      : the file object where output will be printed; default sys.stdout
#
# Values may contain ANSI color codes; they don't count toward column widths.
#
# Returns the total width, in characters, of the table.

def print_table(rows, headers, *, colgap=2, print_header=True,
                no_leader_cols=(), right_cols=(), output_file=None):
    out = output_file or sys.stdout
    numcols = len(headers)
    #
    def _print_column_val(val, colidx, leader=" "):
        r = max_field_len[colidx] - visible_len(val)
        if colidx in right_cols:
            print(" " * r + val, end="", file=out)
            r = 0
        else:
            print(val, end="", file=out)
        if colidx == numcols - 1:
            print(file=out)
        else:
            if colidx not in no_leader_cols and r > 1:
                print(" " + leader*(r-1), end="", file=out)
            else:
                print(" " * r, end="", file=out)
            print(" " * colgap, end="", file=out)
    #
    max_field_len = [visible_len(h) for h in headers]
    for row in rows:
        for i, val in enumerate(row):
            max_field_len[i] = max(max_field_len[i], visible_len(val))
    total_width = sum(max_field_len) + colgap*(numcols-1)
    if print_header:
        for i, header in enumerate(headers):
            _print_column_val(header, i)
        print("-" * total_width, file=out)
    for row in rows:
        for i, val in enumerate(row):
            _print_column_val(val, i, leader=' ' if i in no_leader_cols else '·')
    return total_width

# print_subcommands_usage() {{{2

# Lists every subcommand followed by its flags and their defaults

def print_subcommands_usage(invalid_cmd=None):
    if invalid_cmd is not None:
        print(f"invalid subcommand: {invalid_cmd}\n\nvalid commands:\n")
    for name in command_funcs:
        print(f"  {name}")
        for option_strings, kwargs in command_flags.get(name, ()):
            metavar = kwargs.get('metavar')
            print(f"    {option_strings[0]}" + (f" {metavar}" if metavar else ""))
            default = '' if kwargs.get('action') == 'store_true' else f" (default {kwargs['default']})"
            print(f"        {kwargs['help']}{default}")
    print()

# }}}1

# Define command functions {{{1

# Every command gets the invocation's Config, the API client, and a Colorizer
App = namedtuple('App', 'config client color')

# argparse type for ID-valued flags
def file_id_arg(value):
    file_id = parse_id(value)
    if file_id is None:
        raise argparse.ArgumentTypeError(f"invalid file id: {value!r}")
    return file_id

# Shared by the list parser and print_subcommands_usage()
LIST_FLAGS = (
    (('-delete', '--delete'), dict(dest='delete', metavar='FILEID', type=file_id_arg, default=-1,
                                   help='delete the given file id before listing')),
    (('-id', '--id'), dict(dest='only_id', action='store_true',
                           help='display the listing as file ids on a single line')),
    (('-url', '--url'), dict(dest='show_url', action='store_true',
                             help='display the listing as download URLs')),
)

def list_cmd(app, args):  # {{{2
    cli_parser = argparse.ArgumentParser(exit_on_error=False,
                                         prog=progname, usage='%(prog)s list [-id|-url|-delete FILEID] [FOLDERID]',
                                         description='List files under a folder (default: the root folder)')
    cli_parser.add_argument('folder_id', nargs='?', help='Folder ID')
    for option_strings, kwargs in LIST_FLAGS:
        cli_parser.add_argument(*option_strings, **kwargs)
    options = cli_parser.parse_args(args)
    color = app.color
    client = app.client
    folder_id = ROOT_FOLDER_ID
    if options.folder_id is not None:
        folder_id = parse_id(options.folder_id)
        if folder_id is None:
            log.info("Invalid folder id %r, listing the root folder", options.folder_id)
            folder_id = ROOT_FOLDER_ID
    if options.delete > 0:
        client.delete_files(options.delete)
    files, parent = client.list_files(folder_id)
    if not files:
        print(f"sorry, folder: {color(parent.name, ANSI.RED)} is empty")
        return
    if options.only_id:
        print(" ".join(str(file.id) for file in files))
        return
    if options.show_url:
        results = get_download_urls(client, [file.id for file in files])
        # Only files that actually have a download URL are shown
        for file in files:
            result = results.get(file.id)
            if result is not None and result.error is None:
                print(result.message)
        return
    rows = []
    for file in files:
        file_id = color(file.id, ANSI.BOLD, ANSI.WHITE)
        size = byte_count_si(file.size)
        if file.is_dir:
            rows.append((file_id, color("dir", ANSI.BOLD, ANSI.BLUE),
                         color(file.name, ANSI.BOLD, ANSI.BLUE), color(size, ANSI.BOLD, ANSI.BLUE)))
        else:
            rows.append((file_id, "---", file.name, size))
    headers = (color("ID", ANSI.BOLD, ANSI.YELLOW), "",
               color(f"> {parent.name}", ANSI.BOLD, ANSI.YELLOW), color("Size", ANSI.BOLD, ANSI.YELLOW))
    print_table(rows, headers, no_leader_cols=(0, 1, 3), right_cols=(3,))

def upload_cmd(app, args):  # {{{2
    cli_parser = argparse.ArgumentParser(exit_on_error=False,
                                         prog=progname, usage='%(prog)s upload url URL...',
                                         description='Tell put.io to download the given URLs')
    cli_parser.add_argument('source', nargs='?', help="Where the files come from; only 'url' is supported")
    cli_parser.add_argument('urls', nargs='*', help='URLs to transfer')
    options = cli_parser.parse_args(args)
    if options.source is None:
        raise MissingArgsError()
    if options.source != 'url':
        print("wrong", options.source)
        return
    if not options.urls:
        raise MissingArgsError()
    color = app.color
    urls = list(dict.fromkeys(valid_urls(options.urls)))
    results = add_transfers(app.client, urls)
    for url in urls:
        result = results[url]
        if result.error is None:
            print(color(f"-> [{url}] {result.message}", ANSI.YELLOW))
        else:
            print(color(f"-> [{result.message}]", ANSI.RED))

def delete_cmd(app, args):  # {{{2
    cli_parser = argparse.ArgumentParser(exit_on_error=False,
                                         prog=progname, usage='%(prog)s delete FILEID...',
                                         description='Delete files')
    cli_parser.add_argument('ids', nargs='*', help='File IDs to delete')
    options = cli_parser.parse_args(args)
    if not options.ids:
        raise MissingArgsError()
    color = app.color
    # IDs that can't be resolved to a name are left alone
    file_names = get_file_names(app.client, options.ids)
    if not file_names:
        return
    app.client.delete_files(*file_names)
    for file_id, file_name in file_names.items():
        print(f"[{color(file_id, ANSI.WHITE)}] -> {color(file_name, ANSI.RED)} deleted")

def move_cmd(app, args):  # {{{2
    cli_parser = argparse.ArgumentParser(exit_on_error=False,
                                         prog=progname, usage='%(prog)s move FILEID... FOLDERID',
                                         description='Move files into a folder')
    cli_parser.add_argument('ids', nargs='*', help='File IDs to move, followed by the destination folder ID')
    options = cli_parser.parse_args(args)
    if len(options.ids) < 2:
        raise MissingArgsError()
    target_folder = parse_id(options.ids[-1])
    if target_folder is None:
        raise InvalidArgsError(f"invalid folder id: {options.ids[-1]}")
    color = app.color
    # The destination is looked up along with the sources so its name can be shown
    file_names = get_file_names(app.client, options.ids)
    source_ids = [file_id for file_id in file_names if file_id != target_folder]
    if not source_ids:
        return
    app.client.move_files(target_folder, *source_ids)
    target_name = file_names.get(target_folder, '')
    for file_id in source_ids:
        print(f"{color(file_names[file_id], ANSI.WHITE)} moved to -> "
              f"{color(target_name, ANSI.BOLD, ANSI.YELLOW)}")

# Map command names to the implementing command function  # {{{2
command_funcs = {
    'list'   : list_cmd,
    'upload' : upload_cmd,
    'delete' : delete_cmd,
    'move'   : move_cmd,
}
# Flags printed under each command in print_subcommands_usage()
command_flags = {
    'list'   : LIST_FLAGS,
}
# End command functions }}}1

# main {{{1

def build_parser():
    parser = argparse.ArgumentParser(exit_on_error=False, add_help=False, prog=progname)
    parser.add_argument('-h', '-help', '--help', dest='help', action='store_true')
    parser.add_argument('-v', '-version', '--version', dest='version', action='store_true')
    parser.add_argument('-c', '-color', '--color', dest='color', action='store_true')
    parser.add_argument('-t', '-token', '--token', dest='token', default='')
    parser.add_argument('-d', '-debug', '--debug', dest='debug', action='store_true')
    parser.add_argument('command', nargs='?')
    parser.add_argument('args', nargs=argparse.REMAINDER)
    return parser

def print_error(ex):
    if isinstance(ex, PutioAPIError):
        print("# put.io API error #\n",
              f"Message: {api_error_message(ex)}",
              f" Status: {api_error_status(ex)}",
              sep='\n', file=sys.stderr)
    else:
        print(ex, file=sys.stderr)

# Runs a single command and returns the process exit code.
def run_command(config, command, args):
    client = get_client(config.token, config.timeout)
    validate_client(client)
    app = App(config, client, Colorizer(config.color))
    try:
        command_funcs[command](app, args)
    except SystemExit as ex:
        # argparse exits on '-h' and on unrecognized arguments
        return 0 if not ex.code else 1
    return 0

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    usage = general_usage.format(progname=progname, version=__version__,
                                 config_file=get_config_file())
    try:
        options, extras = build_parser().parse_known_args(argv)
    except argparse.ArgumentError as ex:
        print(ex, file=sys.stderr)
        return 1
    if extras:
        print(f"unrecognized arguments: {' '.join(extras)}", file=sys.stderr)
        return 1
    if options.help:
        print(usage, end="")
        return 0
    if options.version:
        print(__version__)
        return 0
    configure_logging(options.debug)
    if options.command is None:
        print(usage, end="")
        return 0
    if options.command not in command_funcs:
        print_subcommands_usage(options.command)
        return 1
    try:
        config = load_config(options)
        return run_command(config, options.command, options.args)
    except (ConfigError, TokenRequiredError, TokenInvalidError,
            MissingArgsError, InvalidArgsError, argparse.ArgumentError,
            PutioAPIError, requests.RequestException) as ex:
        print_error(ex)
        return 1

if __name__ == '__main__':
    sys.exit(main())

# }}}1
