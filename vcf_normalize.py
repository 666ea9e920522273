import logging

from vcardio.core import InvalidCard, TextReader, read_vcard, serialize_vcard
from vcardio.text import FOLD_WIDTH


_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
logger.addHandler(_handler)


def collect_vcards(input_stream, skip_invalid=False):
    reader = TextReader(input_stream)
    vcards = []

    while True:
        try:
            vcard = read_vcard(reader)
        except InvalidCard as exc:
            if not skip_invalid:
                raise

            logger.error(f'skipping invalid vcard: {exc}')
            continue

        if not vcard:
            break

        vcards.append(vcard)

    return vcards


def normalize_vcard_stream(input_stream, output_stream, width=FOLD_WIDTH, skip_invalid=False):
    """Rewrite every vcard of ``input_stream`` in canonical form.

    Nothing is written unless the whole input parses.
    """
    vcards = collect_vcards(input_stream, skip_invalid)
    output_stream.write(''.join(serialize_vcard(vcard, width) for vcard in vcards))

    return len(vcards)


def normalize_vcard_file(input_pathname, output_pathname, width=FOLD_WIDTH, skip_invalid=False):
    # the input is fully read before the output is opened, so both may be the same file
    with open(input_pathname, 'r', encoding='utf-8', newline='') as input_stream:
        vcards = collect_vcards(input_stream, skip_invalid)

    text = ''.join(serialize_vcard(vcard, width) for vcard in vcards)

    with open(output_pathname, 'w', encoding='utf-8', newline='') as output_stream:
        output_stream.write(text)

    return len(vcards)


def _expand_input_files(parser, patterns):
    import os
    import glob

    input_files = set()

    for pattern in patterns:
        if glob.has_magic(pattern):
            input_files.update(p for p in glob.glob(pattern, recursive=True) if os.path.isfile(p))
        elif not os.path.isfile(pattern):
            parser.error(f'"{pattern}" does not exist or is not a file.')
        else:
            input_files.add(pattern)

    return sorted(input_files)


def _plan_outputs(parser, input_files, output_path):
    import os

    if len(input_files) >= 2:
        if os.path.exists(output_path) and not os.path.isdir(output_path):
            parser.error('several input files need an output directory.')

        os.makedirs(output_path, exist_ok=True)

    plan = {}

    for input_pathname in input_files:
        if os.path.isdir(output_path):
            output_pathname = os.path.join(output_path, os.path.basename(input_pathname))
        else:
            output_pathname = output_path

        key = os.path.normcase(os.path.abspath(output_pathname))

        if key in plan:
            parser.error(f'"{plan[key][0]}" and "{input_pathname}" would both be written to "{output_pathname}".')

        plan[key] = (input_pathname, output_pathname)

    return list(plan.values())


def main():
    import sys
    import argparse

    parser = argparse.ArgumentParser(description='rewrite vcard files in canonical form.')
    parser.add_argument('-i', dest='input_files', action='append', required=True, metavar='INPUT',
                        help='specify input vcard files. supports wildcards.')
    parser.add_argument('-o', dest='output_path', required=True, metavar='OUTPUT',
                        help='output file, or output directory when several inputs are given. '
                             'may name an input to rewrite it in place.')
    parser.add_argument('-w', '--width', dest='width', type=int, default=FOLD_WIDTH, metavar='WIDTH',
                        help=f'fold lines longer than WIDTH characters (default: {FOLD_WIDTH}).')
    parser.add_argument('--skip-invalid', dest='skip_invalid', action='store_true',
                        help='log and drop invalid vcards instead of failing the whole file.')
    args = parser.parse_args()

    if args.width < 2:
        parser.error('width must be at least 2.')

    input_files = _expand_input_files(parser, args.input_files)

    if not input_files:
        parser.exit(0)

    errors = 0

    for input_pathname, output_pathname in _plan_outputs(parser, input_files, args.output_path):
        logger.info('normalizing "%s" to "%s"', input_pathname, output_pathname)

        try:
            count = normalize_vcard_file(input_pathname, output_pathname, args.width, args.skip_invalid)
        except (OSError, InvalidCard) as exc:
            logger.error(f'"{input_pathname}": {exc}')
            errors += 1
            continue

        logger.info('wrote %d vcard(s) to "%s"', count, output_pathname)

    sys.exit(errors)


if __name__ == '__main__':
    main()
