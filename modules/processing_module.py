from shiny import module, ui, render, reactive, req

from shared import export_to_csv, processing_rows_to_frame


@module.ui
def processing_ui():
    return ui.TagList(
        ui.card(
            ui.card_header("Processing (ΔCT / ΔΔCT per sample)"),
            ui.input_select("gene", "Target gene:", choices=[]),
            ui.output_data_frame("processing_table"),
            ui.download_button("download_csv", "Download CSV (.csv)"),
        ),
    )


@module.server
def processing_server(input, output, session, result_reactive):
    """Server logic for the per-gene processing tables.

    Parameters
    ----------
    result_reactive : reactive.Calc
        Returns the current PipelineResult, or None when the pipeline has
        not run successfully.
    """

    @reactive.effect
    @reactive.event(result_reactive)
    def update_gene_choices():
        result = result_reactive()
        genes = list(result.processing_results) if result is not None else []
        selected = input.gene() if input.gene() in genes else (genes[0] if genes else None)
        ui.update_select("gene", choices=genes, selected=selected)

    @reactive.calc
    def selected_frame():
        result = result_reactive()
        req(result is not None)
        gene = input.gene()
        req(gene in result.processing_results)
        return processing_rows_to_frame(result.processing_results[gene])

    @render.data_frame
    def processing_table():
        return selected_frame().round(2)

    @render.download(filename=lambda: f"{input.gene()}_processing.csv")
    def download_csv():
        yield export_to_csv(selected_frame())
