#!/usr/bin/python3
r'''
command-line replacement for Ruby ascii85 program

reads the named file, or stdin if none or `-`, and writes the Ascii85
encoding (or with -d, the decoding) to stdout

>>> from io import BytesIO
>>> check = BytesIO()
>>> main(['-w', '10'], BytesIO(b'Supercalifragilisticexpialidocious'), check)
>>> check.getvalue()
b'<~;g!%jEar\nNoBkDBoB5)\n0rF*),+AU&\n0.@;KXgDe!\nL"F`R~>'
>>> check = BytesIO()
>>> main(['--wrap', '0'], BytesIO(b'Ruby'), check)
>>> check.getvalue()
b'<~;KZGo~>'
>>> check = BytesIO()
>>> main(['-d', '-'], BytesIO(b'junk <~;KZ\nGo~> junk'), check)
>>> check.getvalue()
b'Ruby'
>>> main(['-d'], BytesIO(b'<~;KZGo{~>'), BytesIO())
Traceback (most recent call last):
    ...
SystemExit: Decoding Error: Illegal character inside Ascii85: '{'
>>> main(['--version'])
Ascii85 v1.1.0
>>> main(['nonexistent.a85'])
Traceback (most recent call last):
    ...
SystemExit: File not found: "nonexistent.a85"

Root can read anything, so an unreadable file has to be simulated:

>>> from unittest import mock
>>> with mock.patch('os.path.exists', return_value=True), \
...         mock.patch('os.access', return_value=False):
...     main(['-d', 'locked.a85'])
Traceback (most recent call last):
    ...
SystemExit: File is not readable: "locked.a85"

A file on disk is read the same way as stdin:

>>> check = BytesIO()
>>> main(['-w', '0', __file__], None, check)
>>> decode(check.getvalue()) == open(__file__, 'rb').read()
True
'''
import os, sys, logging  # pylint: disable=multiple-imports
from a85filter import encode, decode, DecodingError

logging.basicConfig(level=logging.DEBUG if __debug__ else logging.WARN)

# pylint: disable=consider-using-f-string
__version__ = '1.1.0'

USAGE = '''Usage: ascii85 [options] [file]
    -w, --wrap COLUMN    Wrap lines at COLUMN. Default is 80, use 0 for no wrapping
    -d, --decode         Decode the input
    -h, --help           Display this help and exit
        --version        Output version information'''

DEFAULTS = {
 'wrap': 80,
 'decode': False,
 'help': False,
 'version': False,
 'file': '-',
}

def column(value):
    '''
    wrap width from command line: negatives count as positive, 0 as False

    >>> column('15'), column('-15'), column('0')
    (15, 15, False)
    '''
    try:
        width = int(value)
    except ValueError:
        raise ValueError('Invalid argument: --wrap %s' % value) from None
    return abs(width) or False

def parse_args(args):
    '''
    turn command-line arguments into a dict of options

    >>> parse_args([])
    {'wrap': 80, 'decode': False, 'help': False, 'version': False, 'file': '-'}
    >>> parse_args(['-d', 'file.a85'])['decode']
    True
    >>> parse_args(['--wrap=0', 'file.a85'])['wrap']
    False
    >>> parse_args(['-w72', '--', '-file'])['file']
    '-file'
    >>> parse_args(['-w'])
    Traceback (most recent call last):
        ...
    ValueError: Missing argument: -w
    >>> parse_args(['--wrap', 'wide'])
    Traceback (most recent call last):
        ...
    ValueError: Invalid argument: --wrap wide
    >>> parse_args(['-x'])
    Traceback (most recent call last):
        ...
    ValueError: Invalid option: -x
    >>> parse_args(['a', 'b'])
    Traceback (most recent call last):
        ...
    ValueError: Superfluous operand(s): "a", "b"
    '''
    options = dict(DEFAULTS)
    operands = []
    args = list(args)
    while args:
        arg = args.pop(0)
        if arg in ('-d', '--decode'):
            options['decode'] = True
        elif arg in ('-h', '--help'):
            options['help'] = True
        elif arg == '--version':
            options['version'] = True
        elif arg in ('-w', '--wrap'):
            if not args:
                raise ValueError('Missing argument: %s' % arg)
            options['wrap'] = column(args.pop(0))
        elif arg.startswith('--wrap='):
            options['wrap'] = column(arg[len('--wrap='):])
        elif arg.startswith('-w'):
            options['wrap'] = column(arg[2:])
        elif arg == '--':
            operands.extend(args)
            break
        elif arg.startswith('-') and arg != '-':
            raise ValueError('Invalid option: %s' % arg)
        else:
            operands.append(arg)
    if len(operands) > 1:
        raise ValueError('Superfluous operand(s): "%s"' % '", "'.join(operands))
    if operands:
        options['file'] = operands[0]
    return options

def convert(options, infile, outfile):
    '''
    encode or decode infile to outfile according to options
    '''
    if options['decode']:
        try:
            outfile.write(decode(infile.read()))
        except DecodingError as error:
            sys.exit('Decoding Error: %s' % error)
    else:
        encode(infile, options['wrap'], out=outfile)

def main(args=None, instream=None, outstream=None):
    '''
    route command-line call to encoder or decoder
    '''
    args = sys.argv[1:] if args is None else args
    try:
        options = parse_args(args)
    except ValueError as problem:
        logging.warning('usage: ascii85 [options] [file]')
        sys.exit(str(problem))
    logging.debug('options: %s', options)
    if options['help']:
        print(USAGE)
        return
    if options['version']:
        print('Ascii85 v%s' % __version__)
        return
    filename = options['file']
    if filename != '-':
        if not os.path.exists(filename):
            sys.exit('File not found: "%s"' % filename)
        if not os.access(filename, os.R_OK):
            sys.exit('File is not readable: "%s"' % filename)
    # stdout is only touched once there is something to write
    outstream = outstream or sys.stdout.buffer
    if filename == '-':
        convert(options, instream or sys.stdin.buffer, outstream)
    else:
        with open(filename, 'rb') as infile:
            convert(options, infile, outstream)
    outstream.flush()

if __name__ == '__main__':
    main()
