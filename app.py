from shiny import App, ui, render, reactive, req

from calculations.ddct import HousekeeperNotFoundError
from calculations.grouping import CtColumnNotFoundError
from calculations.models import ProcessingConfig
from calculations.pipeline import find_ignored_genes, process
from config import get_settings
from logger import get_logger
from modules.output_module import output_server, output_ui
from modules.processing_module import processing_server, processing_ui
from shared import (
    count_gene_rows,
    dataset_to_frame,
    extract_gene_names,
    extract_status_warnings,
    generate_sample_names,
    import_file,
    parse_sample_list,
    validate_control_list,
    validate_housekeeper,
    validate_replica_count,
    validate_sample_list,
    validate_tsv_data,
)

logger = get_logger(__name__)
settings = get_settings()

# UI
app_ui = ui.page_sidebar(
    ui.sidebar(
        ui.input_file("file", "Upload Data File", accept=[".txt", ".tsv"], multiple=False),
        ui.input_numeric(
            "replica_count", "Replicas per sample:",
            value=settings.DEFAULT_REPLICA_COUNT, min=1, max=settings.MAX_REPLICA_COUNT,
        ),
        ui.input_select("housekeeper", "Select housekeeping gene:", choices=[]),
        ui.input_text_area("samples", "Samples (one per line):", rows=8),
        ui.input_text_area("controls", "Control samples (one per line):", rows=4),
        ui.output_ui("validation_errors"),
        width=320,
    ),
    ui.output_ui("run_title"),
    ui.output_ui("status_warnings"),
    ui.card(
        ui.card_header("Input Data"),
        ui.output_data_frame("input_table"),
    ),
    processing_ui("processing"),
    output_ui("output"),
    title="ΔΔCT Gene Expression Analysis",
)


# Server
def server(input, output, session):

    @reactive.calc
    def dataset():
        """Parse the uploaded export; None until a valid file is loaded."""
        file_info = input.file()
        if not file_info:
            return None
        try:
            data = import_file(file_info[0]["datapath"], name=file_info[0]["name"])
        except (ValueError, RuntimeError) as e:
            logger.warning("Import of %s failed: %s", file_info[0]["name"], e)
            ui.notification_show(str(e), type="error")
            return None

        check = validate_tsv_data(data)
        if not check.is_valid:
            for error in check.errors:
                ui.notification_show(error.message, type="error")
            return None
        return data

    @reactive.calc
    def available_genes():
        data = dataset()
        return extract_gene_names(data) if data is not None else []

    @reactive.calc
    def gene_row_count():
        genes = available_genes()
        if not genes:
            return 0
        return count_gene_rows(dataset(), genes[0])

    @reactive.effect
    @reactive.event(available_genes)
    def update_housekeeper_choices():
        genes = available_genes()
        selected = settings.DEFAULT_HOUSEKEEPER if settings.DEFAULT_HOUSEKEEPER in genes else None
        ui.update_select("housekeeper", choices=genes, selected=selected)

    @reactive.effect
    @reactive.event(dataset, input.replica_count)
    def regenerate_sample_names():
        count = input.replica_count()
        if dataset() is None or not validate_replica_count(count).is_valid:
            return
        names = generate_sample_names(gene_row_count(), int(count))
        ui.update_text_area("samples", value="\n".join(names))

    @reactive.calc
    def validation():
        """Validate the sidebar inputs; returns (config or None, errors)."""
        errors = []
        count = input.replica_count()
        replica_check = validate_replica_count(count)
        errors.extend(replica_check.errors)

        housekeeper = input.housekeeper() or ""
        errors.extend(validate_housekeeper(housekeeper, available_genes()).errors)

        samples = parse_sample_list(input.samples())
        if replica_check.is_valid:
            errors.extend(validate_sample_list(samples, gene_row_count(), int(count)).errors)

        if errors:
            return None, errors

        controls = parse_sample_list(input.controls())
        if controls:
            control_check = validate_control_list(controls, samples)
            if not control_check.is_valid:
                errors.extend(control_check.errors)
                controls = []

        config = ProcessingConfig(
            replica_count=int(count),
            housekeeper=housekeeper,
            samples=tuple(samples),
            controls=tuple(controls),
        )
        return config, errors

    @reactive.calc
    def pipeline_result():
        """Full recomputation on every input change; None when a stage fails."""
        data = dataset()
        config, _ = validation()
        if data is None or config is None:
            return None
        try:
            return process(data, config)
        except (CtColumnNotFoundError, HousekeeperNotFoundError) as e:
            logger.warning("Processing failed: %s", e)
            ui.notification_show(str(e), type="error")
            return None

    @reactive.calc
    def ignored_genes():
        result = pipeline_result()
        if result is None or not result.output_results:
            return []
        return find_ignored_genes(available_genes(), result, input.housekeeper())

    processing_server("processing", result_reactive=pipeline_result)
    output_server("output", result_reactive=pipeline_result, ignored_reactive=ignored_genes)

    # Rendering
    @render.ui
    def run_title():
        data = dataset()
        req(data is not None)
        return ui.h4(data.title)

    @render.ui
    def status_warnings():
        data = dataset()
        req(data is not None)
        warnings = extract_status_warnings(data)
        if not warnings:
            return None
        return ui.div(
            ui.strong("Status Warnings:"),
            ui.tags.ul(*[ui.tags.li(w) for w in warnings]),
            class_="text-warning",
        )

    @render.ui
    def validation_errors():
        if dataset() is None:
            return None
        _, errors = validation()
        if not errors:
            return None
        return ui.div(
            *[ui.p(error.message) for error in errors],
            class_="text-danger",
        )

    @render.data_frame
    def input_table():
        data = dataset()
        req(data is not None)
        return dataset_to_frame(data)


app = App(app_ui, server)
