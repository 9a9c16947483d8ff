#!/usr/bin/python3 -OO
r'''
Ascii85 (Adobe variant) encoder and decoder, working a chunk at a time

Every 4 bytes of input become 5 characters in the range `!` (33) through
`u` (117), the base-85 digits of the big-endian 32-bit word plus 33. An
all-zero word is written as the single character `z`, and output is
bracketed by `<~` and `~>`. A short final word is zero-padded before
encoding and the padding characters are cut off again afterwards.

>>> encode(b'Ruby')
'<~;KZGo~>'
>>> decode('<~;KZGo~>')
b'Ruby'
>>> print(encode('Supercalifragilisticexpialidocious', 15))
<~;g!%jEarNoBkD
BoB5)0rF*),+AU&
0.@;KXgDe!L"F`R
~>
>>> encode('Supercalifragilisticexpialidocious', False)
'<~;g!%jEarNoBkDBoB5)0rF*),+AU&0.@;KXgDe!L"F`R~>'

Round trips, for every length across a few tuples and every kind of
line wrapping:

>>> samples = [bytes(range(250, 256)) * 7, b'\0' * 9, b'\xff' * 7]
>>> samples += [bytes(range(256))[:length] for length in range(37)]
>>> all(decode(encode(sample, width)) == sample
...     for sample in samples for width in (False, None, 2, 3, 15, 80))
True
'''
import io, os, sys, struct, logging  # pylint: disable=multiple-imports

logging.basicConfig(level=logging.DEBUG if __debug__ else logging.WARN)

# pylint: disable=consider-using-f-string  # "we don't do that here"
# 4:5 ratio keeps buffer refills on tuple boundaries
UNENCODED_CHUNK_SIZE = 4 * 2048
ENCODED_CHUNK_SIZE = 5 * 2048
OPENING, CLOSING = b'<~', b'~>'
WHITESPACE = frozenset(b' \t\r\n\f\0')
ZERO_WORD = b'\0\0\0\0'
# place values of the 5 digits of a tuple, most significant first
POWERS = tuple(85 ** (4 - count) for count in range(5))

def doctest_debug(*args):  # pylint: disable=unused-argument
    '''
    redefined below if running doctest module
    '''
    return

class DecodingError(ValueError):
    '''
    Malformed Ascii85 input

    Raised for an illegal character, a `z` inside a 5-tuple, a tuple
    worth 2**32 or more, or a last tuple consisting of a single character.
    '''

class ChunkReader(io.BufferedReader):
    r'''
    Iterate over a byte stream in chunks of `buffer_size` bytes

    >>> list(ChunkReader(io.BytesIO(b'abcdefg'), 3))
    [b'abc', b'def', b'g']
    >>> list(ChunkReader(io.BytesIO(b''), 3))
    []
    '''
    def __init__(self, stream, buffer_size=UNENCODED_CHUNK_SIZE):
        super().__init__(stream, buffer_size)
        self.chunk_size = buffer_size

    def __iter__(self):
        '''
        Along with `__next__`, allows this to function as an iterator
        '''
        return self

    def __next__(self):
        '''
        Return the next chunk, short only at end of data
        '''
        chunk = super().read(self.chunk_size)
        if not chunk:  # empty string or None: EndOfFile
            raise StopIteration
        doctest_debug('ChunkReader read %d bytes', len(chunk))
        return chunk

    def release(self):
        '''
        Hand the underlying stream back to the caller without closing it
        '''
        return self.detach()

class ChunkWriter(io.BufferedWriter):
    r'''
    Collect small writes, passing them on `buffer_size` bytes at a time

    >>> stream = io.BytesIO()
    >>> writer = ChunkWriter(stream, 10)
    >>> writer.write(b'<~')
    2
    >>> stream.getvalue()  # still held in the buffer
    b''
    >>> writer.release() is stream
    True
    >>> stream.getvalue()
    b'<~'
    '''
    def release(self):
        '''
        Flush, then hand the underlying stream back without closing it
        '''
        return self.detach()

class Delimiter:
    '''
    Bracket the encoded stream with `<~` and `~>`, otherwise untouched

    >>> stream = io.BytesIO()
    >>> delimiter = Delimiter(stream)
    >>> delimiter.write(b';KZGo')
    >>> delimiter.finish() is stream
    True
    >>> stream.getvalue()
    b'<~;KZGo~>'
    '''
    def __init__(self, sink):
        self.sink = sink
        self.sink.write(OPENING)

    def write(self, chunk):
        '''
        Pass encoded characters through
        '''
        self.sink.write(chunk)

    def finish(self):
        '''
        Write the closing delimiter and flush the sink
        '''
        self.sink.write(CLOSING)
        self.sink.flush()
        return self.sink

class LineWrapper(Delimiter):
    r'''
    Bracket the encoded stream, breaking lines every `wrap_lines` columns

    Tuples are split across lines wherever the column limit falls. If the
    closing `~>` doesn't fit on the last line it gets a line of its own.

    >>> stream = io.BytesIO()
    >>> wrapper = LineWrapper(stream, 4)
    >>> wrapper.write(b'abcdefghij')
    >>> wrapper.finish().getvalue()
    b'<~ab\ncdef\nghij\n~>'
    >>> stream = io.BytesIO()
    >>> wrapper = LineWrapper(stream, 5)
    >>> wrapper.write(b'abc')
    >>> wrapper.write(b'de')
    >>> wrapper.finish().getvalue()
    b'<~abc\nde~>'

    Widths below 2 would leave no room for a delimiter:

    >>> LineWrapper(io.BytesIO(), -7).line_length
    2
    '''
    def __init__(self, sink, wrap_lines=80):
        super().__init__(sink)
        self.line_length = max(2, int(wrap_lines))
        self.column = len(OPENING)

    def write(self, chunk):
        '''
        Pass encoded characters through, inserting newlines as needed
        '''
        view = memoryview(chunk)
        while view:
            if self.column + len(view) < self.line_length:
                self.sink.write(view)
                self.column += len(view)
                return
            remaining = self.line_length - self.column
            self.sink.write(view[:remaining])
            self.sink.write(b'\n')
            self.column = 0
            view = view[remaining:]

    def finish(self):
        '''
        Write the closing delimiter, on a new line if it won't fit
        '''
        if self.column + len(CLOSING) > self.line_length:
            self.sink.write(b'\n')
        return super().finish()

class A85Encoder:
    r'''
    State of one encoding session

    Chunks may be any size; bytes beyond the last whole word are held
    until the next `write` or until `finish`.

    >>> stream = io.BytesIO()
    >>> encoder = A85Encoder(ChunkWriter(stream, 10), False)
    >>> for chunk in (b'R', b'ub', b'y\0\0\0', b'\0\0'):
    ...     encoder.write(chunk)
    >>> encoder.finish().release().getvalue()
    b'<~;KZGoz!!~>'

    Only a whole zero word becomes `z`; a padded one is cut down instead:

    >>> stream = io.BytesIO()
    >>> encoder = A85Encoder(stream, None)
    >>> encoder.write(b'\0' * 5)
    >>> encoder.finish().getvalue()
    b'<~z!!~>'
    '''
    def __init__(self, sink, wrap_lines=80):
        if wrap_lines is None or wrap_lines is False:
            self.wrapper = Delimiter(sink)
        else:
            self.wrapper = LineWrapper(sink, wrap_lines)
        self.leftover = b''
        self.tuplebuf = bytearray(b'!!!!!')

    def pack(self, word):
        '''
        Fill the tuple buffer with the 5 characters representing `word`
        '''
        tuplebuf = self.tuplebuf
        for index in (4, 3, 2, 1):
            word, digit = divmod(word, 85)
            tuplebuf[index] = digit + 33
        tuplebuf[0] = word + 33
        return tuplebuf

    def write(self, chunk):
        '''
        Encode all complete words available so far
        '''
        data = self.leftover + chunk
        usable = len(data) - len(data) % 4
        encoded = bytearray()
        for (word,) in struct.iter_unpack('>L', data[:usable]):
            if word:
                encoded.extend(self.pack(word))
            else:
                encoded.extend(b'z')
        self.leftover = data[usable:]
        if encoded:
            self.wrapper.write(encoded)

    def finish(self):
        '''
        Encode any partial word left over, close off, and return the sink
        '''
        if self.leftover:
            padding = 4 - len(self.leftover)
            doctest_debug('final word padded with %d bytes', padding)
            (word,) = struct.unpack('>L', self.leftover + ZERO_WORD[:padding])
            self.wrapper.write(self.pack(word)[:5 - padding])
            self.leftover = b''
        return self.wrapper.finish()

class A85Decoder:
    r'''
    State of one decoding session

    `word` accumulates the value of the current tuple, and `count` is how
    many of its characters have been seen.

    >>> stream = io.BytesIO()
    >>> decoder = A85Decoder(stream)
    >>> for chunk in (b';K', b' \n', b'ZG', b'o', b'z', b'!'):
    ...     decoder.write(chunk)
    >>> decoder.count
    1
    >>> decoder.write(b'!')
    >>> decoder.finish()
    >>> stream.getvalue()
    b'Ruby\x00\x00\x00\x00\x00'
    '''
    def __init__(self, sink):
        self.sink = sink
        self.word = 0
        self.count = 0

    def write(self, chunk):
        '''
        Decode one chunk of Ascii85 characters
        '''
        word, count = self.word, self.count
        decoded = bytearray()
        for byte in chunk:
            if byte in WHITESPACE:
                continue
            if byte == 0x7a:  # 'z'
                if count:
                    raise DecodingError("Found 'z' inside Ascii85 5-tuple")
                decoded.extend(ZERO_WORD)
            elif 0x21 <= byte <= 0x75:  # '!' through 'u'
                word += (byte - 33) * POWERS[count]
                count += 1
                if count == 5:
                    if word > 0xffffffff:
                        raise DecodingError(
                            'Invalid Ascii85 5-tuple (%d >= 2**32)' % word)
                    decoded.extend(word.to_bytes(4, 'big'))
                    word = count = 0
            else:
                raise DecodingError(
                    'Illegal character inside Ascii85: %r' %
                    (chr(byte) if byte < 0x80 else bytes([byte])))
        self.word, self.count = word, count
        if decoded:
            self.sink.write(decoded)

    def finish(self):
        '''
        Check the end of input, and decode the last partial tuple if any

        The missing characters are taken as the highest digit, `u`, which
        for every count of 2 through 4 rounds the value up just far
        enough to restore the bytes zeroed out by padding.
        '''
        if not self.count:
            return
        if self.count == 1:
            raise DecodingError('Last 5-tuple consists of single character')
        count = self.count - 1
        word = self.word + POWERS[count]
        if word > 0xffffffff:
            raise DecodingError('Invalid Ascii85 5-tuple (%d >= 2**32)' % word)
        doctest_debug('final tuple yields %d bytes', count)
        self.sink.write(word.to_bytes(4, 'big')[:count])
        self.word = self.count = 0

def as_stream(source):
    '''
    Wrap strings and bytes in a stream; pass streams through as they are
    '''
    if isinstance(source, str):
        return io.BytesIO(source.encode('utf-8'))
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(source)
    return source

def encode(source, wrap_lines=80, out=None):
    r'''
    Encode bytes, a str (as UTF-8), or a binary stream as Ascii85

    With `wrap_lines` set to False or None, the output is a single line.
    If `out` is given, the output is written to it and it is returned;
    otherwise the encoded text is returned.

    >>> encode(b'')
    ''
    >>> encode(b'\0\0\0\0')
    '<~z~>'
    >>> encode(b'\0')
    '<~!!~>'
    >>> encode(io.BytesIO(b'Ruby'))
    '<~;KZGo~>'
    >>> encode(b'Ruby', 2)
    '<~\n;K\nZG\no\n~>'
    >>> encode(b'Ruby', 0) == encode(b'Ruby', 2)
    True
    >>> out = io.BytesIO()
    >>> encode(b'Ruby', out=out) is out
    True
    >>> out.getvalue()
    b'<~;KZGo~>'

    Wrapped lines never exceed the width:

    >>> text = encode(bytes(range(256)) * 3, 15)
    >>> max(len(line) for line in text.split('\n'))
    15
    >>> decode(text.replace('\n', '')) == bytes(range(256)) * 3
    True
    '''
    reader = ChunkReader(as_stream(source), UNENCODED_CHUNK_SIZE)
    sink = io.BytesIO() if out is None else out
    writer = None
    try:
        first = next(reader, b'')
        if not first:
            return '' if out is None else out
        writer = ChunkWriter(sink, ENCODED_CHUNK_SIZE)
        encoder = A85Encoder(writer, wrap_lines)
        encoder.write(first)
        for chunk in reader:
            encoder.write(chunk)
        encoder.finish()
    finally:
        reader.release()
        if writer is not None:
            writer.release()
    return sink.getvalue().decode('ascii') if out is None else out

def extract(text):
    '''
    Return what lies between the first `<~` and the following `~>`

    Works on str and bytes alike; without both delimiters the result is
    empty.

    >>> extract('Foo<~;KZGo~>Bar<~z~>Baz')
    ';KZGo'
    >>> extract(b'<~;KZGo~>')
    b';KZGo'
    >>> extract('No delimiters')
    ''
    >>> extract('<~>'), extract('~><~')
    ('', '')
    >>> extract('<~' + extract('x<~;KZGo~>y') + '~>')
    ';KZGo'
    '''
    if isinstance(text, str):
        opening, closing = OPENING.decode(), CLOSING.decode()
    else:
        opening, closing = OPENING, CLOSING
    start = text.find(opening)
    if start == -1:
        return text[:0]
    end = text.find(closing, start + len(opening))
    if end == -1:
        return text[:0]
    return text[start + len(opening):end]

def decode(text, out=None):
    '''
    Decode the first `<~`...`~>` delimited Ascii85 region of `text`

    Everything outside the delimiters is ignored, including any further
    delimited regions.

    >>> decode('Foo<~;KZGo~>Bar<~87cURDZ~>Baz')
    b'Ruby'
    >>> decode('No delimiters')
    b''
    >>> decode(b'<~!!!!z!~>')
    Traceback (most recent call last):
        ...
    a85filter.DecodingError: Found 'z' inside Ascii85 5-tuple
    '''
    return decode_raw(extract(text), out)

def decode_raw(source, out=None):
    '''
    Decode Ascii85 without delimiters, from str, bytes or a binary stream

    If `out` is given, the output is written to it and it is returned.

    >>> decode_raw(';KZGo')
    b'Ruby'
    >>> decode_raw(io.BytesIO(b';KZ\\nGo'))
    b'Ruby'
    >>> decode_raw(';K\\tZ\\r\\x0cG\\x00o\\n')
    b'Ruby'
    >>> decode_raw('')
    b''
    >>> out = io.BytesIO()
    >>> decode_raw('z!!', out) is out
    True
    >>> out.getvalue()
    b'\\x00\\x00\\x00\\x00\\x00'
    >>> decode_raw('s8W-!')
    b'\\xff\\xff\\xff\\xff'
    >>> decode_raw('uuuuu')
    Traceback (most recent call last):
        ...
    a85filter.DecodingError: Invalid Ascii85 5-tuple (4437053124 >= 2**32)
    >>> decode_raw(';KZGo !')
    Traceback (most recent call last):
        ...
    a85filter.DecodingError: Last 5-tuple consists of single character
    >>> decode_raw(';KZ~Go')
    Traceback (most recent call last):
        ...
    a85filter.DecodingError: Illegal character inside Ascii85: '~'
    >>> decode_raw(';KZ\\xe9Go')
    Traceback (most recent call last):
        ...
    a85filter.DecodingError: Illegal character inside Ascii85: b'\\xc3'

    A short last tuple can overflow too once it is rounded up:

    >>> decode_raw('uu')
    Traceback (most recent call last):
        ...
    a85filter.DecodingError: Invalid Ascii85 5-tuple (4437053125 >= 2**32)
    '''
    reader = ChunkReader(as_stream(source), ENCODED_CHUNK_SIZE)
    sink = io.BytesIO() if out is None else out
    writer = ChunkWriter(sink, UNENCODED_CHUNK_SIZE)
    try:
        decoder = A85Decoder(writer)
        for chunk in reader:
            decoder.write(chunk)
        decoder.finish()
    finally:
        reader.release()
        writer.release()
    return sink.getvalue() if out is None else out

if os.path.splitext(os.path.basename(sys.argv[0]))[0] == 'doctest' or \
                    os.getenv('PYTHON_DEBUGGING'):
    # pylint: disable=function-redefined
    def doctest_debug(*args):
        '''
        use logging.debug only during doctest
        '''
        logging.debug(*args)
# vim: tabstop=8 expandtab shiftwidth=4 softtabstop=4
