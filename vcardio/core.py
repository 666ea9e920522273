from vcardio.mapping import CaseInsensitiveDict
from vcardio.text import CRLF, FOLD_WIDTH, escape, fold, index_unescaped, split_structured_value, unescape, unfold


DEFAULT_VERSION = '3.0'

_RESERVED_NAMES = frozenset({'BEGIN', 'END', 'VERSION'})

_UNSAFE_NAME_CHARS = ':;\\\r\n'
_UNSAFE_KEY_CHARS = ':;=\\\r\n'


class InvalidProperty(ValueError):
    pass


class InvalidCard(ValueError):
    pass


class TextReader:
    def __init__(self, stream):
        self.stream = stream
        self.line_number = 0

    def readline(self):
        line = self.stream.readline()

        if line:
            self.line_number += 1

        return line


class LineSpan:
    def __init__(self, start=1, end=1):
        self.start = start
        self.end = end

    def __str__(self):
        return f'{self.start}:{self.end}'


class VCardProperty:
    """A named vcard property with its parameters and values.

    Parameter keys are case-insensitive and hold a single value each; the
    last value set for a key wins.
    """

    def __init__(self, name='', values=None, parameters=None):
        self.name = name
        self.parameters = CaseInsensitiveDict(parameters)
        self.values = list(values or [])

    def __eq__(self, other):
        if not isinstance(other, VCardProperty):
            return NotImplemented

        return (self.name.upper() == other.name.upper()
                and self.parameters == other.parameters
                and self.values == other.values)

    def __repr__(self):
        return f'VCardProperty({self.name!r}, {self.values!r}, {dict(self.parameters)!r})'

    def add_parameter(self, key, value):
        self.parameters[key] = value

    def remove_parameter(self, key):
        return self.parameters.discard(key)

    def has_parameter(self, key):
        return key in self.parameters

    def get_parameter(self, key):
        return self.parameters.get(key)

    def add_value(self, value):
        self.values.append(value)

    def remove_value_at(self, index):
        if not 0 <= index < len(self.values):
            return False

        del self.values[index]
        return True

    def remove_value(self, value):
        try:
            self.values.remove(value)
        except ValueError:
            return False

        return True

    def has_value(self, value):
        return value in self.values

    def get_value(self, index=0):
        if not 0 <= index < len(self.values):
            return None

        return self.values[index]

    def to_text(self):
        return serialize_vcard_property(self)

    @classmethod
    def from_text(cls, line):
        return parse_vcard_property(line)


class VCard:
    """A vcard: a version plus its properties grouped by case-insensitive name.

    Groups keep the order in which their name was first added, and properties
    keep their arrival order inside a group. Properties are stored by
    reference.
    """

    __line_span__ = None

    def __init__(self, version=DEFAULT_VERSION):
        self.version = version
        self.properties = CaseInsensitiveDict()

    def __eq__(self, other):
        if not isinstance(other, VCard):
            return NotImplemented

        return self.version == other.version and self.properties == other.properties

    def __repr__(self):
        return f'VCard({self.version!r}, {dict(self.properties)!r})'

    def add_property(self, prop):
        _check_property_name(prop.name)
        self.properties.setdefault(prop.name, [])
        properties = self.properties[prop.name]
        properties.append(prop)

    def remove_properties(self, name):
        return self.properties.discard(name)

    def remove_property_at(self, name, index):
        properties = self.properties.get(name, [])

        if not 0 <= index < len(properties):
            return None

        prop = properties.pop(index)

        if not properties:
            self.remove_properties(name)

        return prop

    def has_property(self, name):
        return name in self.properties

    def get_properties(self, name):
        # a copy: groups only change through the accessors, which drop empty groups
        properties = self.properties.get(name)

        if properties is None:
            return None

        return list(properties)

    def get_property(self, name, index=0):
        properties = self.properties.get(name, [])

        if not 0 <= index < len(properties):
            return None

        return properties[index]

    def set_properties(self, name, properties):
        _check_property_name(name)

        if properties:
            self.properties[name] = list(properties)
        else:
            self.remove_properties(name)

    def iter_properties(self):
        for properties in self.properties.values():
            yield from properties

    def to_text(self, width=FOLD_WIDTH):
        return serialize_vcard(self, width)

    @classmethod
    def from_text(cls, text):
        return parse_vcard(text)


def _check_property_name(name):
    if name.upper() in _RESERVED_NAMES:
        raise InvalidCard(f'{name.upper()} is reserved and cannot be stored as a property')


def _has_any(string, chars):
    return any(char in string for char in chars)


def serialize_vcard_property(prop):
    """Serialize a property as ``NAME;KEY=value:value;value``.

    ``:`` and ``=`` have no escape sequence, so names, parameter keys and
    parameter values that would read back differently raise InvalidProperty.
    Property values may contain any character.
    """
    if not prop.name:
        raise InvalidProperty('Invalid property: missing name')

    if _has_any(prop.name, _UNSAFE_NAME_CHARS):
        raise InvalidProperty(f'Invalid property name: {prop.name!r}')

    if not prop.values:
        raise InvalidProperty(f'Invalid property {prop.name}: no values')

    parts = [prop.name.upper()]

    for key, value in prop.parameters.items():
        if not key or not value:
            raise InvalidProperty(f'Invalid property {prop.name}: empty parameter key or value')

        if _has_any(key, _UNSAFE_KEY_CHARS) or ':' in value:
            raise InvalidProperty(f'Invalid parameter {key!r}={value!r} in property {prop.name}')

        parts.append(f';{key.upper()}={escape(value)}')

    parts.append(':')
    parts.append(';'.join(escape(value) for value in prop.values))

    return ''.join(parts)


def parse_vcard_property(line):
    delimiter_index = index_unescaped(line, ':')

    if delimiter_index < 0 or delimiter_index == len(line) - 1:
        raise InvalidProperty(f"Invalid property, missing ':' delimiter or no values: {line!r}")

    property_name, *parameters_data = split_structured_value(line[:delimiter_index], ';')

    if not property_name:
        raise InvalidProperty(f'Invalid property, missing name: {line!r}')

    prop = VCardProperty(property_name.upper())

    for parameter_data in parameters_data:
        equal_index = index_unescaped(parameter_data, '=')

        if equal_index < 0:
            raise InvalidProperty(f'Invalid parameter {parameter_data!r} in property {prop.name}')

        parameter_name = parameter_data[:equal_index]
        parameter_value = unescape(parameter_data[equal_index + 1:])

        if not parameter_name or not parameter_value:
            raise InvalidProperty(f'Invalid parameter {parameter_data!r} in property {prop.name}')

        prop.add_parameter(parameter_name.upper(), parameter_value)

    values_data = line[delimiter_index + 1:]
    prop.values = [unescape(value) for value in split_structured_value(values_data, ';')]

    return prop


def serialize_vcard(vcard, width=FOLD_WIDTH):
    if not vcard.version:
        raise InvalidCard('Invalid vcard: no version')

    lines = ['BEGIN:VCARD', f'VERSION:{vcard.version}']

    for prop in vcard.iter_properties():
        lines.append(fold(serialize_vcard_property(prop), width))

    lines.append('END:VCARD')

    return CRLF.join(lines) + CRLF


def _parse_property_line(line, line_number):
    try:
        return parse_vcard_property(line)
    except InvalidProperty as exc:
        raise InvalidCard(f'Invalid vcard, logical line {line_number}: {exc}') from exc


def parse_vcard(text):
    lines = [line for line in unfold(text).split(CRLF) if line and not line.isspace()]

    if len(lines) < 3 or lines[0].upper() != 'BEGIN:VCARD' or lines[-1].upper() != 'END:VCARD':
        raise InvalidCard('Invalid vcard: missing BEGIN:VCARD or END:VCARD')

    version = _parse_property_line(lines[1], 2)

    if version.name != 'VERSION' or version.parameters or len(version.values) != 1:
        raise InvalidCard(f'Invalid vcard: expected a single VERSION value, got: {lines[1]!r}')

    vcard = VCard(version.values[0])

    for line_number, line in enumerate(lines[2:-1], 3):
        prop = _parse_property_line(line, line_number)

        if prop.name in _RESERVED_NAMES:
            raise InvalidCard(f'Invalid vcard, logical line {line_number}: unexpected {prop.name} property')

        vcard.add_property(prop)

    return vcard


def _read_physical_line(reader):
    line = reader.readline()

    if not line:
        return None

    return line.rstrip('\r\n')


def read_vcard(reader):
    while True:
        line = _read_physical_line(reader)

        if line is None:
            return

        if line.strip():
            break

    line_span = LineSpan(reader.line_number, reader.line_number)

    if line.upper() != 'BEGIN:VCARD':
        raise InvalidCard(f'Expected BEGIN:VCARD, line {reader.line_number}')

    lines = [line]

    while True:
        line = _read_physical_line(reader)

        if line is None:
            raise InvalidCard(f'incomplete vcard starting at line {line_span.start}')

        lines.append(line)

        if line.upper() == 'END:VCARD':
            break

    line_span.end = reader.line_number

    try:
        vcard = parse_vcard(CRLF.join(lines) + CRLF)
    except InvalidCard as exc:
        raise InvalidCard(f'{exc} (lines {line_span})') from exc

    vcard.__line_span__ = line_span

    return vcard


def read_vcards(stream):
    reader = TextReader(stream)

    while True:
        vcard = read_vcard(reader)

        if not vcard:
            break

        yield vcard


def write_vcard(stream, vcard, width=FOLD_WIDTH):
    stream.write(serialize_vcard(vcard, width))
