"""Tag mapping configuration, column types, tag filters and matchers."""