"""
Frame Execution

Builds one ordered unit of work per frame: every registered pipeline
records its commands into a shared encoder, in registration order, and the
finished command buffer is submitted to the device queue once.

After the submission, presenters (the drawing pass) read the current
lattice buffer.
"""


class Renderer:
    """
    Per-frame driver of the registered pipelines.

    A pipeline is any object with a run(encoder, dt) method. A presenter
    is any object with a present() method.

    Parameters
    ----------
    device : Device
        Accelerator whose queue receives the frames
    width, height : int
        Grid resolution
    """

    def __init__(self, device, width, height):
        self.device = device
        self.width = width
        self.height = height
        self.pipelines = []
        self.presenters = []
        self.frame_count = 0
        self.last_command_buffer = None

    def get_resolution(self):
        return self.width, self.height

    def add_pipeline(self, pipeline):
        if pipeline not in self.pipelines:
            self.pipelines.append(pipeline)

    def add_pipelines(self, pipelines):
        for pipeline in pipelines:
            self.add_pipeline(pipeline)

    def remove_pipeline(self, pipeline):
        if pipeline in self.pipelines:
            self.pipelines.remove(pipeline)

    def add_presenter(self, presenter):
        if presenter not in self.presenters:
            self.presenters.append(presenter)

    def render(self, dt):
        """
        Record, submit and present one frame.

        Parameters
        ----------
        dt : float
            Frame time step in seconds

        Returns
        -------
        command_buffer : CommandBuffer
            The submitted unit of work
        """
        encoder = self.device.create_command_encoder()

        for pipeline in self.pipelines:
            pipeline.run(encoder, dt)

        command_buffer = encoder.finish()
        self.device.queue.submit([command_buffer])

        for presenter in self.presenters:
            presenter.present()

        self.frame_count += 1
        self.last_command_buffer = command_buffer
        return command_buffer
