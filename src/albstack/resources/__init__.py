from albstack.stack import Reference

# a literal value, or a value only known once the referenced resource exists
StringToken = str | Reference
