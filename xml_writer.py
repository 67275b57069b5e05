from xml.dom import minidom


def create_tag(document: minidom.Document, parent_tag, child: str, child_text=None):
    child_tag = document.createElement(child)
    parent_tag.appendChild(child_tag)

    if child_text is not None:
        # terminals are padded with spaces: <symbol> { </symbol>
        child_tag.appendChild(document.createTextNode(f" {child_text} "))

    return child_tag


def close_tag(document: minidom.Document, tag) -> None:
    """Add empty text to a tag without children to force minidom to create a closing tag"""
    if not tag.hasChildNodes():
        tag.appendChild(document.createTextNode(""))


def to_xml_string(document: minidom.Document) -> str:
    xml_str = document.toprettyxml(indent="  ")

    # remove xml header
    lines = xml_str.splitlines()[1:]

    # format empty tags in two lines instead of one
    formatted = []
    for line in lines:
        if "><" in line:
            indentation = line.split("<", 1)[0]
            open_tag, close_tag_text = line.split("><", 1)
            formatted.append(open_tag + ">")
            formatted.append(indentation + "<" + close_tag_text)
        elif line and not line.isspace():
            formatted.append(line)

    return "\n".join(formatted) + "\n"


def write_xml_file(document: minidom.Document, output_file: str) -> None:
    with open(output_file, "w") as f:
        f.write(to_xml_string(document))
