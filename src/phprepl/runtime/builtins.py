"""
Builtin PHP symbols known without asking a PHP process.

This is a curated subset of the core library: the functions, classes and
constants people reach for interactively. When the executor is available its
snapshots add everything else that is actually declared.
"""

from phprepl.runtime.environment import ClassInfo, MemberInfo, MemberKind, RuntimeEnvironment

BUILTIN_FUNCTIONS: tuple[str, ...] = (
    # strings
    "addslashes", "explode", "htmlspecialchars", "implode", "lcfirst",
    "ltrim", "nl2br", "number_format", "rtrim", "sprintf", "printf",
    "str_contains", "str_ends_with", "str_pad", "str_repeat", "str_replace",
    "str_split", "str_starts_with", "strcmp", "strlen", "strpos", "strrev",
    "strtolower", "strtoupper", "substr", "substr_count", "trim", "ucfirst",
    "ucwords", "wordwrap", "mb_strlen", "mb_substr", "mb_strtolower",
    "mb_strtoupper", "preg_match", "preg_match_all", "preg_replace",
    "preg_split", "preg_quote",
    # arrays
    "array_chunk", "array_column", "array_combine", "array_diff",
    "array_fill", "array_filter", "array_flip", "array_intersect",
    "array_key_exists", "array_key_first", "array_key_last", "array_keys",
    "array_map", "array_merge", "array_pop", "array_push", "array_reduce",
    "array_reverse", "array_search", "array_shift", "array_slice",
    "array_splice", "array_sum", "array_unique", "array_unshift",
    "array_values", "array_walk", "count", "in_array", "range", "sort",
    "rsort", "usort", "uasort", "uksort", "ksort", "krsort", "asort",
    "arsort", "compact", "extract",
    # math
    "abs", "ceil", "floor", "round", "max", "min", "intdiv", "fmod", "pow",
    "sqrt", "random_int", "rand", "mt_rand",
    # types and variables
    "boolval", "floatval", "intval", "strval", "settype", "gettype",
    "get_debug_type", "is_array", "is_bool", "is_callable", "is_float",
    "is_int", "is_null", "is_numeric", "is_object", "is_string",
    "is_iterable", "var_dump", "var_export", "print_r", "serialize",
    "unserialize", "json_encode", "json_decode", "json_last_error_msg",
    # classes and functions
    "call_user_func", "call_user_func_array", "class_exists",
    "function_exists", "get_class", "get_class_methods", "get_object_vars",
    "get_parent_class", "method_exists", "property_exists",
    "interface_exists", "spl_object_id", "spl_autoload_register",
    "iterator_to_array",
    # files, time, misc
    "basename", "dirname", "file_exists", "file_get_contents",
    "file_put_contents", "is_dir", "is_file", "mkdir", "realpath", "unlink",
    "date", "time", "microtime", "hrtime", "mktime", "strtotime", "sleep",
    "usleep", "uniqid", "md5", "sha1", "hash", "base64_encode",
    "base64_decode", "bin2hex", "getenv", "ini_get", "ini_set",
    "error_reporting", "trigger_error", "set_error_handler",
    "set_exception_handler", "memory_get_usage", "memory_get_peak_usage",
    "phpversion", "debug_backtrace", "debug_zval_refcount",
)

BUILTIN_CONSTANTS: tuple[str, ...] = (
    "PHP_EOL", "PHP_INT_MAX", "PHP_INT_MIN", "PHP_INT_SIZE", "PHP_FLOAT_EPSILON",
    "PHP_FLOAT_MAX", "PHP_FLOAT_MIN", "PHP_VERSION", "PHP_OS", "PHP_OS_FAMILY",
    "DIRECTORY_SEPARATOR", "PATH_SEPARATOR", "M_PI", "M_E", "NAN", "INF",
    "E_ALL", "E_ERROR", "E_WARNING", "E_NOTICE", "E_DEPRECATED", "E_STRICT",
    "JSON_PRETTY_PRINT", "JSON_THROW_ON_ERROR", "JSON_UNESCAPED_SLASHES",
    "JSON_UNESCAPED_UNICODE", "SORT_REGULAR", "SORT_NUMERIC", "SORT_STRING",
    "COUNT_RECURSIVE", "ARRAY_FILTER_USE_KEY", "ARRAY_FILTER_USE_BOTH",
    "PREG_SPLIT_NO_EMPTY", "STR_PAD_LEFT", "STR_PAD_RIGHT", "STR_PAD_BOTH",
)


def _methods(owner: str, *names: str, static: bool = False) -> list[MemberInfo]:
    return [MemberInfo(name, MemberKind.METHOD, static, "public", owner) for name in names]


def _constants(owner: str, *names: str) -> list[MemberInfo]:
    return [MemberInfo(name, MemberKind.CONSTANT, True, "public", owner) for name in names]


def _builtin_classes() -> list[ClassInfo]:
    throwable_methods = (
        "getMessage", "getCode", "getFile", "getLine", "getTrace",
        "getTraceAsString", "getPrevious", "__toString",
    )
    classes = [
        ClassInfo("Traversable", "interface"),
        ClassInfo("Iterator", "interface", interfaces=("Traversable",),
                  members=_methods("Iterator", "current", "key", "next", "rewind", "valid")),
        ClassInfo("IteratorAggregate", "interface", interfaces=("Traversable",),
                  members=_methods("IteratorAggregate", "getIterator")),
        ClassInfo("ArrayAccess", "interface",
                  members=_methods("ArrayAccess", "offsetExists", "offsetGet",
                                   "offsetSet", "offsetUnset")),
        ClassInfo("Countable", "interface", members=_methods("Countable", "count")),
        ClassInfo("Stringable", "interface", members=_methods("Stringable", "__toString")),
        ClassInfo("JsonSerializable", "interface",
                  members=_methods("JsonSerializable", "jsonSerialize")),
        ClassInfo("Throwable", "interface", interfaces=("Stringable",),
                  members=_methods("Throwable", *throwable_methods)),
        ClassInfo("UnitEnum", "interface", members=_methods("UnitEnum", "cases", static=True)),
        ClassInfo("BackedEnum", "interface", interfaces=("UnitEnum",),
                  members=_methods("BackedEnum", "from", "tryFrom", static=True)),
        ClassInfo("stdClass"),
        ClassInfo("Closure", members=(
            _methods("Closure", "bind", "fromCallable", static=True)
            + _methods("Closure", "bindTo", "call", "__invoke")
        )),
        ClassInfo("Generator", interfaces=("Iterator",),
                  members=_methods("Generator", "getReturn", "send", "throw")),
        ClassInfo("Exception", interfaces=("Throwable",),
                  members=_methods("Exception", *throwable_methods)),
        ClassInfo("Error", interfaces=("Throwable",),
                  members=_methods("Error", *throwable_methods)),
        ClassInfo("ErrorException", parent="Exception",
                  members=_methods("ErrorException", "getSeverity")),
        ClassInfo("TypeError", parent="Error"),
        ClassInfo("ValueError", parent="Error"),
        ClassInfo("ArithmeticError", parent="Error"),
        ClassInfo("DivisionByZeroError", parent="ArithmeticError"),
        ClassInfo("JsonException", parent="Exception"),
        ClassInfo("LogicException", parent="Exception"),
        ClassInfo("InvalidArgumentException", parent="LogicException"),
        ClassInfo("DomainException", parent="LogicException"),
        ClassInfo("LengthException", parent="LogicException"),
        ClassInfo("OutOfRangeException", parent="LogicException"),
        ClassInfo("RuntimeException", parent="Exception"),
        ClassInfo("OutOfBoundsException", parent="RuntimeException"),
        ClassInfo("OverflowException", parent="RuntimeException"),
        ClassInfo("UnexpectedValueException", parent="RuntimeException"),
        ClassInfo("ArrayIterator", interfaces=("Iterator", "ArrayAccess", "Countable"),
                  members=_methods("ArrayIterator", "getArrayCopy", "append", "asort", "ksort")),
        ClassInfo("ArrayObject", interfaces=("IteratorAggregate", "ArrayAccess", "Countable"),
                  members=_methods("ArrayObject", "getArrayCopy", "append", "exchangeArray",
                                   "asort", "ksort")),
        ClassInfo("SplStack", interfaces=("Iterator", "Countable"),
                  members=_methods("SplStack", "push", "pop", "top", "isEmpty", "toArray")),
        ClassInfo("SplObjectStorage", interfaces=("Countable", "Iterator", "ArrayAccess"),
                  members=_methods("SplObjectStorage", "attach", "detach", "contains")),
        ClassInfo("DateTimeInterface", "interface",
                  members=(
                      _methods("DateTimeInterface", "format", "getTimestamp",
                               "getTimezone", "diff")
                      + _constants("DateTimeInterface", "ATOM", "ISO8601", "RFC3339", "COOKIE")
                  )),
        ClassInfo("DateTime", interfaces=("DateTimeInterface",),
                  members=(
                      _methods("DateTime", "modify", "setDate", "setTime",
                               "setTimestamp", "setTimezone", "add", "sub")
                      + _methods("DateTime", "createFromFormat", static=True)
                  )),
        ClassInfo("DateTimeImmutable", interfaces=("DateTimeInterface",),
                  members=(
                      _methods("DateTimeImmutable", "modify", "setDate", "setTime",
                               "setTimestamp", "setTimezone", "add", "sub")
                      + _methods("DateTimeImmutable", "createFromFormat", static=True)
                  )),
        ClassInfo("DateInterval",
                  members=_methods("DateInterval", "format") + [
                      MemberInfo(name, MemberKind.PROPERTY, False, "public", "DateInterval", "int")
                      for name in ("y", "m", "d", "h", "i", "s", "days", "invert")
                  ]),
        ClassInfo("ReflectionClass",
                  members=_methods("ReflectionClass", "getName", "getMethods",
                                   "getProperties", "getConstants", "getParentClass",
                                   "newInstance", "newInstanceArgs", "isInterface")),
    ]
    return classes


def load_builtins(environment: RuntimeEnvironment) -> None:
    """Register the builtin functions, classes and constants."""
    environment.define_functions(BUILTIN_FUNCTIONS)
    for name in BUILTIN_CONSTANTS:
        environment.define_constant(name)
    for info in _builtin_classes():
        environment.define_class(info)
